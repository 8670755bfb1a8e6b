from workspace_chat.config.constants import COPIED_NOTICE, NOTHING_TO_COPY_NOTICE
from workspace_chat.config.integration_config.base import Clipboard
from workspace_chat.config.logger import get_logger
from workspace_chat.utils.message_log import MessageLog

logger = get_logger("API Logger")

COPY_FAILED_NOTICE = "Could not copy to clipboard."


class ClipboardNotifier:
    def __init__(self, clipboard: Clipboard):
        self.clipboard = clipboard

    async def copy_last(self, messages: MessageLog) -> str:
        """Copy the latest bot answer and return the notice to show."""
        message = messages.last_bot_message()
        if message is None:
            return NOTHING_TO_COPY_NOTICE

        try:
            await self.clipboard.write_text(message.text)
        except Exception as e:
            logger.error(f"Clipboard write failed: {e}")
            return COPY_FAILED_NOTICE
        return COPIED_NOTICE
