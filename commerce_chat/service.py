from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from loguru import logger

from .catalog import CatalogRepository, SQLiteCatalogRepository, import_csv_directory
from .config import Settings, get_settings
from .context import build_context, with_tool_result
from .errors import NotFoundError, UnauthorizedError
from .llm import ChatCompletionClient, TextGenerator
from .locks import SessionLocks
from .prompts import FALLBACK_RESPONSE
from .repository import (
    ConversationRepository,
    Message,
    SenderType,
    Session,
    SessionStatus,
    SQLiteConversationRepository,
    utc_now,
)
from .tool_calls import is_tool_call
from .tools import ToolExecutor

TITLE_LENGTH = 60


@dataclass(frozen=True)
class ChatTurn:
    session_id: int
    message_id: int
    content: str
    timestamp: datetime
    sender: SenderType


@dataclass(frozen=True)
class Conversation:
    session: Session
    messages: List[Message]


class ChatService:
    """Runs chat turns: session resolution, ordered persistence and one optional tool round-trip."""

    _instance: Optional["ChatService"] = None

    def __init__(
        self,
        conversations: ConversationRepository,
        catalog: CatalogRepository,
        generator: TextGenerator,
        locks: Optional[SessionLocks] = None,
    ) -> None:
        self._conversations = conversations
        self._catalog = catalog
        self._generator = generator
        self._tools = ToolExecutor(catalog)
        self._locks = locks or SessionLocks()

    @classmethod
    def from_settings(cls, settings: Settings) -> "ChatService":
        conversations = SQLiteConversationRepository(settings.chat_db_path)
        catalog = SQLiteCatalogRepository(settings.chat_db_path)
        if settings.seed_data_dir:
            import_csv_directory(catalog, conversations, settings.seed_data_dir)
        return cls(conversations, catalog, ChatCompletionClient.from_settings(settings))

    @classmethod
    def instance(cls) -> "ChatService":
        if cls._instance is None:
            cls._instance = cls.from_settings(get_settings())
        return cls._instance

    def resolve_session(
        self, user_id: int, conversation_id: Optional[int] = None, first_message: str = ""
    ) -> Session:
        """Return the session a new message should be appended to.

        Creates a session when ``conversation_id`` is None. An existing session must
        belong to ``user_id``; a CLOSED or EXPIRED one is reactivated and saved.
        """
        if conversation_id is None:
            session = self._conversations.create_session(
                user_id, title=first_message.strip()[:TITLE_LENGTH] or None
            )
            logger.info(f"Created session {session.id} for user {user_id}")
            return session

        session = self._conversations.get_session(conversation_id)
        if session is None:
            raise NotFoundError(f"Conversation session not found with ID: {conversation_id}")
        if session.user_id != user_id:
            raise UnauthorizedError("Unauthorized: Session does not belong to the user.")
        if session.status in (SessionStatus.CLOSED, SessionStatus.EXPIRED):
            logger.info(f"Reactivating {session.status.value} session {session.id}")
            session = self._conversations.update_session_status(session.id, SessionStatus.ACTIVE)
        return session

    async def handle_message(
        self, user_id: int, message: str, conversation_id: Optional[int] = None
    ) -> ChatTurn:
        user = self._conversations.get_user(user_id)
        if user is None:
            raise NotFoundError(f"User not found with ID: {user_id}")

        if conversation_id is None:
            session = self.resolve_session(user.id, None, first_message=message)
            async with self._locks.hold(session.id):
                return await self._run_turn(session, message)

        async with self._locks.hold(conversation_id):
            session = self.resolve_session(user.id, conversation_id)
            return await self._run_turn(session, message)

    async def _run_turn(self, session: Session, message: str) -> ChatTurn:
        history = self._conversations.get_messages(session.id)

        # The user message is durable before the model is called
        self._conversations.add_message(
            session.id,
            self._conversations.next_sequence_number(session.id),
            SenderType.USER,
            message,
        )

        context = build_context(history, message)
        raw = await self._generator.complete(context)

        metadata = None
        if is_tool_call(raw):
            logger.info(f"Model requested tool call in session {session.id}: {raw.strip()}")
            tool_result = self._tools.execute(raw)
            logger.debug(f"Tool result for session {session.id}: {tool_result}")
            final = await self._generator.complete(with_tool_result(context, tool_result))
            metadata = json.dumps({"tool_call": raw.strip(), "tool_result": tool_result})
        else:
            final = raw

        if final is None or not final.strip():
            final = FALLBACK_RESPONSE

        ai_message = self._conversations.add_message(
            session.id,
            self._conversations.next_sequence_number(session.id),
            SenderType.AI,
            final,
            metadata=metadata,
        )
        self._conversations.touch_session(session.id, utc_now())

        return ChatTurn(
            session_id=session.id,
            message_id=ai_message.id,
            content=ai_message.content,
            timestamp=ai_message.timestamp,
            sender=ai_message.sender,
        )

    def get_history(self, session_id: int) -> Conversation:
        session = self._conversations.get_session(session_id)
        if session is None:
            raise NotFoundError(f"Conversation session not found with ID: {session_id}")
        return Conversation(session=session, messages=self._conversations.get_messages(session_id))
