import asyncio
import unittest

from semantic_kernel.contents import AuthorRole, ChatMessageContent
from semantic_kernel.exceptions import ServiceResponseException

from commerce_chat.context import ContextEntry, build_context, with_tool_result
from commerce_chat.errors import GenerationError
from commerce_chat.llm import TOOL_OUTPUT_LABEL, ChatCompletionClient, to_chat_history


class _FakeService:
    def __init__(self, *outcomes, delay: float = 0.0):
        self._outcomes = list(outcomes)
        self._delay = delay
        self.calls = 0
        self.last_history = None

    async def get_chat_message_content(self, chat_history, settings, **kwargs):
        self.calls += 1
        self.last_history = chat_history
        if self._delay:
            await asyncio.sleep(self._delay)
        outcome = self._outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


def _client(service, **kwargs) -> ChatCompletionClient:
    kwargs.setdefault("retry_wait_seconds", 0)
    return ChatCompletionClient(service, **kwargs)


class ChatHistoryConversionTests(unittest.TestCase):
    def test_roles_and_order_are_preserved(self) -> None:
        context = with_tool_result(build_context([], "find socks"), "No products found matching 'socks'.")
        history = to_chat_history(context)
        self.assertEqual(
            [AuthorRole.SYSTEM, AuthorRole.USER, AuthorRole.USER, AuthorRole.USER],
            [m.role for m in history.messages],
        )
        self.assertEqual("find socks", history.messages[1].content)
        self.assertEqual(
            TOOL_OUTPUT_LABEL + "No products found matching 'socks'.", history.messages[2].content
        )


class ChatCompletionClientTests(unittest.TestCase):
    def test_returns_message_text(self) -> None:
        service = _FakeService(ChatMessageContent(role=AuthorRole.ASSISTANT, content="Hi there"))
        result = asyncio.run(_client(service).complete([ContextEntry("user", "hello")]))
        self.assertEqual("Hi there", result)
        self.assertEqual(1, len(service.last_history.messages))

    def test_missing_response_yields_none(self) -> None:
        service = _FakeService(None)
        self.assertIsNone(asyncio.run(_client(service).complete([ContextEntry("user", "hello")])))

    def test_retries_service_errors_then_succeeds(self) -> None:
        service = _FakeService(
            ServiceResponseException("502 bad gateway"),
            ChatMessageContent(role=AuthorRole.ASSISTANT, content="recovered"),
        )
        result = asyncio.run(_client(service, max_attempts=3).complete([ContextEntry("user", "hello")]))
        self.assertEqual("recovered", result)
        self.assertEqual(2, service.calls)

    def test_gives_up_after_max_attempts(self) -> None:
        service = _FakeService(*[ServiceResponseException("connection reset") for _ in range(3)])
        with self.assertRaises(GenerationError) as ctx:
            asyncio.run(_client(service, max_attempts=3).complete([ContextEntry("user", "hello")]))
        self.assertIn("connection reset", str(ctx.exception))
        self.assertEqual(3, service.calls)

    def test_timeout_is_reported_as_generation_error(self) -> None:
        service = _FakeService("late", "late", delay=0.5)
        client = _client(service, timeout_seconds=0.01, max_attempts=2)
        with self.assertRaises(GenerationError) as ctx:
            asyncio.run(client.complete([ContextEntry("user", "hello")]))
        self.assertIn("timed out", str(ctx.exception))
        self.assertEqual(2, service.calls)

    def test_non_retryable_errors_are_not_retried(self) -> None:
        service = _FakeService(ValueError("bad payload"))
        with self.assertRaises(GenerationError):
            asyncio.run(_client(service, max_attempts=3).complete([ContextEntry("user", "hello")]))
        self.assertEqual(1, service.calls)
