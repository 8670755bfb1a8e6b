from enum import Enum
from datetime import datetime
from typing import Annotated, Any, Dict, Literal, Optional, Tuple, Union
from pydantic import BaseModel, ConfigDict, Field

from workspace_chat.config.prompts import DATA_QUESTION_PROMPT
from workspace_chat.models.data_models import SourceQueryResult


class Role(str, Enum):
    USER = "user"
    BOT = "bot"


class ChartHandle(BaseModel):
    """Reference to a rendered chart. `instance` is whatever the rendering engine returned."""
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    chart_id: str
    chart_type: str
    instance: Any = Field(default=None, exclude=True)


class Message(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Role
    text: str
    timestamp: datetime
    chart_ref: Optional[ChartHandle] = None
    is_error: bool = False


class PromptTemplate(BaseModel):
    model_config = ConfigDict(frozen=True)

    system_prompt: str
    user_prompt: str

    @classmethod
    def default(cls) -> "PromptTemplate":
        return cls(
            system_prompt=DATA_QUESTION_PROMPT["systemPrompt"],
            user_prompt=DATA_QUESTION_PROMPT["userPrompt"],
        )

    def render(self, context: str, query: str) -> str:
        return self.user_prompt.format(context=context, query=query)


class RequestPayload(BaseModel):
    """Request sent to the reasoning backend for one turn."""
    model_config = ConfigDict(frozen=True)

    model: str
    system_prompt: str
    prompt: str
    context: Tuple[SourceQueryResult, ...]
    user_query: str


class FailureReason(str, Enum):
    NETWORK_ERROR = "network_error"
    MALFORMED_RESPONSE = "malformed_response"
    BACKEND_ERROR = "backend_error"


class TextOnly(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["text"] = "text"
    text: str


class TextWithVisualization(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["visualization"] = "visualization"
    text: str
    viz_spec: Dict[str, Any]


class Failure(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["failure"] = "failure"
    reason: FailureReason
    detail: Optional[str] = None


ReasoningResponse = Annotated[
    Union[TextOnly, TextWithVisualization, Failure],
    Field(discriminator="kind"),
]
