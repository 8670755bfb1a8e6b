from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import Any, Dict, Optional


class ErrorInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: str = Field(..., description="Failure category, e.g. timeout, not_found, malformed_layout.")
    message: str = Field(..., description="Internal detail, never shown to the user.")


class SourceQueryResult(BaseModel):
    """Outcome of fetching one source. Exactly one of payload/error is set."""
    model_config = ConfigDict(frozen=True)

    source_id: str
    payload: Optional[Dict[str, Any]] = None
    error: Optional[ErrorInfo] = None

    @model_validator(mode="after")
    def check_payload_or_error(self):
        if (self.payload is None) == (self.error is None):
            raise ValueError("exactly one of payload or error must be set")
        return self

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def succeeded(cls, source_id: str, payload: Dict[str, Any]) -> "SourceQueryResult":
        return cls(source_id=source_id, payload=payload)

    @classmethod
    def failed(cls, source_id: str, kind: str, message: str) -> "SourceQueryResult":
        return cls(source_id=source_id, error=ErrorInfo(kind=kind, message=message))
