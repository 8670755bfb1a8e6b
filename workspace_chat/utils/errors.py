from workspace_chat.config.constants import (
    GENERIC_ERROR_MESSAGE,
    NO_DATA_MESSAGE,
    VISUALIZATION_ERROR_MESSAGE,
    BUSY_MESSAGE,
)


class ChatCoreError(Exception):
    """Base class for every recoverable failure of the chat core."""

    user_message = GENERIC_ERROR_MESSAGE

    def __init__(self, message: str = None, user_message: str = None):
        super().__init__(message or self.user_message)
        if user_message:
            self.user_message = user_message


class SourceFetchError(ChatCoreError):
    """A single source could not be read. The turn goes on without it."""

    def __init__(self, source_id: str, message: str = None, kind: str = "error"):
        super().__init__(message or f"Failed to fetch source {source_id}")
        self.source_id = source_id
        self.kind = kind


class EmptyContextError(ChatCoreError):
    user_message = NO_DATA_MESSAGE


class NetworkError(ChatCoreError):
    pass


class MalformedResponseError(ChatCoreError):
    pass


class VisualizationError(ChatCoreError):
    user_message = VISUALIZATION_ERROR_MESSAGE


class UnsupportedFeatureError(ChatCoreError):
    pass


class BusyError(ChatCoreError):
    user_message = BUSY_MESSAGE


class EmptyQueryError(ChatCoreError):
    user_message = "Please type a question first."
