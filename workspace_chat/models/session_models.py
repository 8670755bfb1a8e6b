from enum import Enum
from typing import Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field

from workspace_chat.models.chat_models import ChartHandle
from workspace_chat.utils.message_log import MessageLog


class TurnState(str, Enum):
    IDLE = "idle"
    AGGREGATING = "aggregating"
    COMPOSING = "composing"
    AWAITING_RESPONSE = "awaiting_response"
    APPLYING = "applying"
    ERROR_APPLYING = "error_applying"


class TurnOutcome(str, Enum):
    REJECTED_EMPTY = "rejected_empty"
    REJECTED_BUSY = "rejected_busy"
    NO_DATA = "no_data"
    ANSWERED = "answered"
    FAILED = "failed"


class SpeechState(str, Enum):
    IDLE = "idle"
    SPEAKING = "speaking"
    LISTENING = "listening"


class Session(BaseModel):
    """State of one mounted chat widget. Owned by its SessionOrchestrator."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    messages: MessageLog = Field(default_factory=MessageLog)
    selected_source_ids: Tuple[str, ...] = ()
    speech_enabled: bool = False
    active_chart: Optional[ChartHandle] = None
    pending_turn: bool = False
