from __future__ import annotations


class ChatError(Exception):
    """Base class for failures raised out of a chat turn."""


class NotFoundError(ChatError):
    pass


class UnauthorizedError(ChatError):
    """The session exists but belongs to a different user."""


class GenerationError(ChatError):
    """The text-generation service failed after all retry attempts."""
