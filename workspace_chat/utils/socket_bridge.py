import asyncio
import uuid
from typing import Any, Dict, Optional

from fastapi import WebSocket
from starlette.websockets import WebSocketState

from workspace_chat.config.logger import get_logger

logger = get_logger("API Logger")


async def send_socket_message(websocket: WebSocket, type: str, content: Any):
    await websocket.send_json({"type": type, "content": content})


class SocketBridge:
    """
    Browser-side collaborators reached over the widget's WebSocket.

    Rendering, speech and clipboard calls become outbound commands. Calls
    that need an answer (end of an utterance, a transcript) wait for the
    matching client event, delivered through the `*_ended` / `recognition_*`
    methods by the chat controller.
    """

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket
        self.supports_synthesis = False
        self.supports_recognition = False
        self._send_lock = asyncio.Lock()
        self._utterances: Dict[str, asyncio.Future] = {}
        self._recognition: Optional[asyncio.Future] = None

    async def send(self, type: str, content: Any = None):
        if self.websocket.client_state == WebSocketState.DISCONNECTED:
            logger.warning(f"Dropping '{type}' event, socket is closed")
            return
        async with self._send_lock:
            try:
                await send_socket_message(self.websocket, type, content)
            except Exception as e:
                logger.error(f"Failed to send '{type}' event: {e}")

    def set_capabilities(self, speech_synthesis: Optional[bool], speech_recognition: Optional[bool]):
        if speech_synthesis is not None:
            self.supports_synthesis = speech_synthesis
        if speech_recognition is not None:
            self.supports_recognition = speech_recognition

    # Rendering engine
    async def create(self, definition: Dict[str, Any]) -> str:
        await self.send("render", definition)
        return definition["chart_id"]

    async def destroy(self, instance: str) -> None:
        await self.send("destroy", {"chart_id": instance})

    # Clipboard
    async def write_text(self, text: str) -> None:
        await self.send("clipboard", {"text": text})

    # Speech primitives
    async def speak(self, text: str, lang: str) -> None:
        utterance_id = uuid.uuid4().hex
        future = asyncio.get_running_loop().create_future()
        self._utterances[utterance_id] = future
        try:
            await self.send("speak", {"utterance_id": utterance_id, "text": text, "lang": lang})
            await future
        finally:
            self._utterances.pop(utterance_id, None)

    async def cancel(self) -> None:
        await self.send("cancel_speech")
        self.speech_ended(None)

    def speech_ended(self, utterance_id: Optional[str]):
        for key, future in list(self._utterances.items()):
            if (utterance_id is None or key == utterance_id) and not future.done():
                future.set_result(None)

    async def start_recognition(self, lang: str) -> Optional[str]:
        self._recognition = asyncio.get_running_loop().create_future()
        future = self._recognition
        try:
            await self.send("start_recognition", {"lang": lang})
            return await future
        finally:
            if self._recognition is future:
                self._recognition = None

    async def stop_recognition(self) -> None:
        future = self._recognition
        await self.send("stop_recognition")
        if future is not None and not future.done():
            future.set_result(None)

    def recognition_result(self, text: Optional[str]):
        if self._recognition is not None and not self._recognition.done():
            self._recognition.set_result(text)

    def recognition_failed(self, error: str):
        if self._recognition is not None and not self._recognition.done():
            self._recognition.set_exception(RuntimeError(error or "Speech recognition failed"))

    def release(self):
        """Unblock anything still waiting on the client."""
        self.speech_ended(None)
        self.recognition_result(None)
