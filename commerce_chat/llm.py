from __future__ import annotations

import asyncio
from typing import Any, Optional, Protocol, Sequence

from loguru import logger
from openai import AsyncOpenAI
from semantic_kernel.connectors.ai.open_ai import (
    AzureChatCompletion,
    OpenAIChatCompletion,
    OpenAIChatPromptExecutionSettings,
)
from semantic_kernel.contents import AuthorRole, ChatHistory, ChatMessageContent
from semantic_kernel.exceptions import ServiceResponseException
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .config import Settings
from .context import ContextEntry
from .errors import GenerationError

_AUTHOR_ROLES = {
    "system": AuthorRole.SYSTEM,
    "user": AuthorRole.USER,
    "assistant": AuthorRole.ASSISTANT,
}

# Tool results are plain text, not answers to native function calls, so they go
# out as user turns labelled the way the system prompt shows them.
TOOL_OUTPUT_LABEL = "Tool Output: "

RETRYABLE_ERRORS = (asyncio.TimeoutError, ServiceResponseException)


class TextGenerator(Protocol):
    async def complete(self, context: Sequence[ContextEntry]) -> Optional[str]: ...


def to_chat_history(context: Sequence[ContextEntry]) -> ChatHistory:
    history = ChatHistory()
    for entry in context:
        if entry.role == "tool":
            message = ChatMessageContent(
                role=AuthorRole.USER, content=TOOL_OUTPUT_LABEL + entry.content
            )
        else:
            message = ChatMessageContent(role=_AUTHOR_ROLES[entry.role], content=entry.content)
        history.add_message(message)
    return history


def _on_retry(retry_state) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    wait = retry_state.next_action.sleep if retry_state.next_action else 0
    reason = type(exc).__name__ if exc else "Unknown"
    logger.warning(
        f"Generation call failed ({reason}). Retrying in {wait:.1f}s "
        f"(attempt {retry_state.attempt_number})..."
    )


class ChatCompletionClient:
    """Sends an ordered context to a chat completion service and returns the raw text.

    Each attempt is bounded by ``timeout_seconds``; timeouts and service errors are
    retried with exponential backoff up to ``max_attempts`` times, after which a
    ``GenerationError`` is raised.
    """

    def __init__(
        self,
        service: Any,
        *,
        temperature: float = 0.7,
        max_tokens: int = 500,
        timeout_seconds: float = 30.0,
        max_attempts: int = 3,
        retry_wait_seconds: float = 1.0,
    ) -> None:
        self._service = service
        self._prompt_settings = OpenAIChatPromptExecutionSettings(
            temperature=temperature,
            max_tokens=max_tokens,
        )
        self._timeout = timeout_seconds
        self._max_attempts = max_attempts
        self._retry_wait = retry_wait_seconds

    @classmethod
    def from_settings(cls, settings: Settings) -> "ChatCompletionClient":
        if settings.llm_provider == "azure":
            service = AzureChatCompletion(
                api_key=settings.llm_api_key,
                endpoint=settings.llm_base_url,
                deployment_name=settings.llm_model,
                api_version=settings.llm_api_version,
            )
        else:
            # Retries are handled here, not by the SDK
            client = AsyncOpenAI(
                api_key=settings.llm_api_key,
                base_url=settings.llm_base_url,
                max_retries=0,
            )
            service = OpenAIChatCompletion(
                ai_model_id=settings.llm_model,
                api_key=settings.llm_api_key,
                async_client=client,
            )
        return cls(
            service,
            temperature=settings.llm_temperature,
            max_tokens=settings.llm_max_tokens,
            timeout_seconds=settings.llm_timeout_seconds,
            max_attempts=settings.llm_max_attempts,
        )

    async def complete(self, context: Sequence[ContextEntry]) -> Optional[str]:
        history = to_chat_history(context)
        logger.debug(f"Generation request: messages={len(context)}")
        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(RETRYABLE_ERRORS),
                wait=wait_exponential(multiplier=self._retry_wait, max=self._retry_wait * 8),
                stop=stop_after_attempt(self._max_attempts),
                before_sleep=_on_retry,
                reraise=True,
            ):
                with attempt:
                    response = await asyncio.wait_for(
                        self._service.get_chat_message_content(
                            chat_history=history,
                            settings=self._prompt_settings,
                        ),
                        timeout=self._timeout,
                    )
        except asyncio.TimeoutError as e:
            raise GenerationError(
                f"Text generation timed out after {self._timeout:g}s"
            ) from e
        except Exception as e:
            raise GenerationError(f"Text generation failed: {e}") from e

        content = getattr(response, "content", None)
        if content is not None and not isinstance(content, str):
            content = str(content)
        return content
