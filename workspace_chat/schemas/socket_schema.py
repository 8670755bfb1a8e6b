from pydantic import BaseModel, Field
from typing import List, Literal, Optional


class ClientAction(BaseModel):
    """One inbound event from the chat widget."""
    action: Literal[
        "send",
        "toggle_speech",
        "toggle_voice_input",
        "copy_last",
        "clear_selection",
        "selection_changed",
        "capabilities",
        "speech_ended",
        "recognition_result",
        "recognition_error",
    ]
    query: Optional[str] = Field(None, description="User question for 'send'.")
    source_ids: Optional[List[str]] = Field(None, description="Full selection for 'selection_changed'.")
    utterance_id: Optional[str] = Field(None, description="Finished utterance for 'speech_ended'.")
    text: Optional[str] = Field(None, description="Transcript for 'recognition_result'.")
    error: Optional[str] = Field(None, description="Reason for 'recognition_error'.")
    speech_synthesis: Optional[bool] = None
    speech_recognition: Optional[bool] = None
