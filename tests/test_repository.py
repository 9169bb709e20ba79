import sqlite3

from commerce_chat.repository import SenderType, SessionStatus
from tests.base import StoreTestCase


class ConversationRepositoryTests(StoreTestCase):
    def test_new_session_is_active_without_end_time(self) -> None:
        session = self._conversations.create_session(1, title="Shoes")
        stored = self._conversations.get_session(session.id)
        self.assertEqual(SessionStatus.ACTIVE, stored.status)
        self.assertIsNone(stored.end_time)
        self.assertEqual(1, stored.user_id)
        self.assertEqual("Shoes", stored.title)

    def test_sequence_starts_at_one_and_increments(self) -> None:
        session = self._conversations.create_session(1)
        self.assertEqual(1, self._conversations.next_sequence_number(session.id))
        self._conversations.add_message(session.id, 1, SenderType.USER, "hi")
        self.assertEqual(2, self._conversations.next_sequence_number(session.id))

    def test_sequences_are_per_session(self) -> None:
        first = self._conversations.create_session(1)
        second = self._conversations.create_session(1)
        self._conversations.add_message(first.id, 1, SenderType.USER, "a")
        self._conversations.add_message(first.id, 2, SenderType.AI, "b")
        self.assertEqual(1, self._conversations.next_sequence_number(second.id))

    def test_duplicate_sequence_is_rejected(self) -> None:
        session = self._conversations.create_session(1)
        self._conversations.add_message(session.id, 1, SenderType.USER, "a")
        with self.assertRaises(sqlite3.IntegrityError):
            self._conversations.add_message(session.id, 1, SenderType.AI, "b")

    def test_messages_come_back_in_sequence_order(self) -> None:
        session = self._conversations.create_session(1)
        self._conversations.add_message(session.id, 2, SenderType.AI, "second")
        self._conversations.add_message(session.id, 1, SenderType.USER, "first")
        contents = [m.content for m in self._conversations.get_messages(session.id)]
        self.assertEqual(["first", "second"], contents)

    def test_status_update_and_touch(self) -> None:
        session = self._conversations.create_session(1)
        closed = self._conversations.update_session_status(session.id, SessionStatus.CLOSED)
        self.assertEqual(SessionStatus.CLOSED, closed.status)
        self._conversations.touch_session(session.id, closed.start_time)
        self.assertEqual(closed.start_time, self._conversations.get_session(session.id).end_time)

    def test_unknown_lookups_return_none(self) -> None:
        self.assertIsNone(self._conversations.get_user(999))
        self.assertIsNone(self._conversations.get_session(999))
