import asyncio
from typing import Optional

from workspace_chat.config.constants import SPEECH_UNSUPPORTED_MESSAGE, RECOGNITION_UNSUPPORTED_MESSAGE
from workspace_chat.config.integration_config.base import SpeechPrimitives
from workspace_chat.config.logger import get_logger
from workspace_chat.config.settings import settings
from workspace_chat.models.session_models import SpeechState
from workspace_chat.utils.errors import BusyError, UnsupportedFeatureError

logger = get_logger("API Logger")


class SpeechController:
    """
    Text-to-speech and voice input as one exclusive resource.

    States: IDLE, SPEAKING, LISTENING. Only one of speaking or listening is
    active at a time. Speaking again while speaking cancels the current
    utterance instead of overlapping it.
    """

    def __init__(self, primitives: Optional[SpeechPrimitives], lang: str = None):
        self.primitives = primitives
        self.lang = lang or settings.DEFAULT_VOICE
        self.state = SpeechState.IDLE
        self._utterance_task: Optional[asyncio.Task] = None
        self._listen_token = None

    def _supports(self, capability: str) -> bool:
        return self.primitives is not None and bool(getattr(self.primitives, capability, False))

    async def speak(self, text: str, replace: bool = False) -> SpeechState:
        """
        Start reading `text` aloud and return immediately.

        While SPEAKING, the current utterance is cancelled and the state
        goes back to IDLE; with `replace=True` the new text is then spoken.
        """
        if not self._supports("supports_synthesis"):
            raise UnsupportedFeatureError("Speech synthesis unavailable", user_message=SPEECH_UNSUPPORTED_MESSAGE)
        if self.state == SpeechState.LISTENING:
            raise BusyError("Cannot speak while listening")

        if self.state == SpeechState.SPEAKING:
            await self.cancel()
            if not replace:
                return self.state

        if not text:
            return self.state

        self.state = SpeechState.SPEAKING
        self._utterance_task = asyncio.create_task(self._utter(text))
        return self.state

    async def _utter(self, text: str):
        try:
            await self.primitives.speak(text, self.lang)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Speech synthesis failed: {e}")
        finally:
            # A cancelled utterance has already been detached by cancel()
            if self._utterance_task is asyncio.current_task():
                self._utterance_task = None
                self.state = SpeechState.IDLE

    async def cancel(self):
        if self.state != SpeechState.SPEAKING:
            return
        task = self._utterance_task
        self._utterance_task = None
        self.state = SpeechState.IDLE
        if task is not None and not task.done():
            task.cancel()
        try:
            await self.primitives.cancel()
        except Exception as e:
            logger.error(f"Failed to cancel speech: {e}")

    async def start_voice_input(self) -> Optional[str]:
        """Listen for one utterance. Returns the transcript, or None if stopped or failed."""
        if not self._supports("supports_recognition"):
            raise UnsupportedFeatureError("Speech recognition unavailable", user_message=RECOGNITION_UNSUPPORTED_MESSAGE)
        if self.state != SpeechState.IDLE:
            raise BusyError(f"Cannot start voice input while {self.state.value}")

        token = object()
        self._listen_token = token
        self.state = SpeechState.LISTENING
        try:
            transcript = await self.primitives.start_recognition(self.lang)
        except Exception as e:
            logger.error(f"Speech recognition failed: {e}")
            transcript = None
        finally:
            if self._listen_token is token:
                self._listen_token = None
                self.state = SpeechState.IDLE

        if not transcript or not transcript.strip():
            return None
        return transcript.strip()

    async def stop_voice_input(self):
        if self.state != SpeechState.LISTENING:
            return
        # Stays LISTENING until the primitive has stopped
        token = self._listen_token
        try:
            await self.primitives.stop_recognition()
        except Exception as e:
            logger.error(f"Failed to stop speech recognition: {e}")
        finally:
            if self._listen_token is token and self.state == SpeechState.LISTENING:
                self._listen_token = None
                self.state = SpeechState.IDLE

    async def close(self):
        await self.cancel()
        await self.stop_voice_input()
