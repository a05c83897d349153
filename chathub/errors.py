class ChatHubError(Exception):
    """Base class for errors raised by the chat core."""


class ValidationError(ChatHubError):
    """A required field is missing or empty."""


class NotFoundError(ChatHubError):
    """The referenced chat or message does not exist."""


class StoreError(ChatHubError):
    """The document store failed to persist a change."""
