from typing import Any, Dict, Optional, Protocol


class DataSourceApi(Protocol):
    async def get_source_layout(self, source_id: str) -> Dict[str, Any]:
        """Return dimension/measure/value data of one source. Raises SourceFetchError."""
        ...


class RenderingEngine(Protocol):
    async def create(self, definition: Dict[str, Any]) -> Any:
        ...

    async def destroy(self, instance: Any) -> None:
        ...


class SpeechPrimitives(Protocol):
    supports_synthesis: bool
    supports_recognition: bool

    async def speak(self, text: str, lang: str) -> None:
        """Resolve once the utterance has finished playing."""
        ...

    async def cancel(self) -> None:
        ...

    async def start_recognition(self, lang: str) -> Optional[str]:
        """Single shot. Resolve with the transcript, or None when stopped."""
        ...

    async def stop_recognition(self) -> None:
        ...


class Clipboard(Protocol):
    async def write_text(self, text: str) -> None:
        ...
