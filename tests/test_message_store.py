from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from jugger_connect.core.errors import (
    NotFoundError,
    TransientStorageError,
    UnauthorizedError,
    ValidationError,
)
from jugger_connect.core.settings import settings
from jugger_connect.services.message_store import MessageStore


@pytest.fixture()
def store(db_session: Session) -> MessageStore:
    return MessageStore(db_session)


class TestCreate:
    def test_persists_message_with_defaults(self, store, alice, bob):
        message = store.create(alice.id, bob.id, "Hi Bob")

        assert message.id is not None
        assert message.sender_id == alice.id
        assert message.receiver_id == bob.id
        assert message.message_type == "text"
        assert message.file_url == ""
        assert message.is_read is False
        assert message.is_deleted is False
        assert message.created_at is not None
        assert message.sender.name == "Alice"
        assert message.receiver.name == "Bob"

    def test_accepts_attachment_types(self, store, alice, bob):
        message = store.create(
            alice.id, bob.id, "photo", message_type="image", file_url="https://cdn/x.png"
        )
        assert message.message_type == "image"
        assert message.file_url == "https://cdn/x.png"

    @pytest.mark.parametrize("content", ["", "   ", None])
    def test_rejects_empty_content(self, store, alice, bob, content):
        with pytest.raises(ValidationError) as exc_info:
            store.create(alice.id, bob.id, content)
        assert exc_info.value.message == "Message content is required"

    def test_rejects_oversized_content(self, store, alice, bob):
        with pytest.raises(ValidationError):
            store.create(alice.id, bob.id, "x" * (settings.message_max_length + 1))

    def test_accepts_content_at_limit(self, store, alice, bob):
        message = store.create(alice.id, bob.id, "x" * settings.message_max_length)
        assert len(message.content) == settings.message_max_length

    def test_rejects_unknown_type(self, store, alice, bob):
        with pytest.raises(ValidationError):
            store.create(alice.id, bob.id, "hi", message_type="sticker")

    def test_rejects_self_addressed_message(self, store, alice):
        with pytest.raises(ValidationError) as exc_info:
            store.create(alice.id, alice.id, "note to self")
        assert exc_info.value.message == "Cannot send a message to yourself"

    def test_rejects_missing_participant(self, store, alice):
        with pytest.raises(ValidationError):
            store.create(alice.id, 0, "hi")


class TestGet:
    def test_returns_deleted_rows(self, store, make_message, alice, bob):
        message = make_message(alice, bob, is_deleted=True)
        assert store.get(message.id).id == message.id

    def test_missing_message(self, store):
        with pytest.raises(NotFoundError):
            store.get(424242)


class TestListConversation:
    def test_newest_first_and_both_directions(self, store, make_message, alice, bob):
        first = make_message(alice, bob, "one")
        second = make_message(bob, alice, "two")
        third = make_message(alice, bob, "three")

        page = store.list_conversation(alice.id, bob.id)

        assert [m.id for m in page.messages] == [third.id, second.id, first.id]
        assert page.page == 1
        assert page.has_more is False

    def test_is_symmetric(self, store, make_message, alice, bob):
        make_message(alice, bob)
        make_message(bob, alice)
        forward = store.list_conversation(alice.id, bob.id).messages
        backward = store.list_conversation(bob.id, alice.id).messages
        assert [m.id for m in forward] == [m.id for m in backward]

    def test_excludes_other_pairs_and_deleted(self, store, make_message, alice, bob, carol):
        kept = make_message(alice, bob)
        make_message(alice, bob, is_deleted=True)
        make_message(alice, carol)

        page = store.list_conversation(alice.id, bob.id)
        assert [m.id for m in page.messages] == [kept.id]

    def test_ties_broken_by_insertion_order(self, store, make_message, alice, bob):
        stamp = make_message(alice, bob).created_at + timedelta(minutes=5)
        older = make_message(alice, bob, "a", created_at=stamp)
        newer = make_message(bob, alice, "b", created_at=stamp)

        page = store.list_conversation(alice.id, bob.id, limit=2)
        assert [m.id for m in page.messages] == [newer.id, older.id]

    def test_pagination(self, store, make_message, alice, bob):
        messages = [make_message(alice, bob, f"m{i}") for i in range(5)]

        first = store.list_conversation(alice.id, bob.id, page=1, limit=2)
        second = store.list_conversation(alice.id, bob.id, page=2, limit=2)
        last = store.list_conversation(alice.id, bob.id, page=3, limit=2)

        assert [m.id for m in first.messages] == [messages[4].id, messages[3].id]
        assert first.has_more is True
        assert [m.id for m in second.messages] == [messages[2].id, messages[1].id]
        assert [m.id for m in last.messages] == [messages[0].id]
        assert last.has_more is False

    def test_page_beyond_history_is_empty(self, store, make_message, alice, bob):
        make_message(alice, bob)
        page = store.list_conversation(alice.id, bob.id, page=5, limit=10)
        assert page.messages == []
        assert page.has_more is False

    def test_rejects_bad_paging(self, store, alice, bob):
        with pytest.raises(ValidationError):
            store.list_conversation(alice.id, bob.id, page=0)
        with pytest.raises(ValidationError):
            store.list_conversation(alice.id, bob.id, limit=-1)


class TestReadState:
    def test_mark_read_is_directional(self, store, make_message, alice, bob):
        incoming = make_message(bob, alice)
        outgoing = make_message(alice, bob)

        assert store.mark_read(bob.id, alice.id) == 1

        store.db.refresh(incoming)
        store.db.refresh(outgoing)
        assert incoming.is_read is True
        assert incoming.read_at is not None
        assert outgoing.is_read is False

    def test_mark_read_is_idempotent(self, store, make_message, alice, bob):
        make_message(bob, alice)
        make_message(bob, alice)
        assert store.mark_read(bob.id, alice.id) == 2
        assert store.mark_read(bob.id, alice.id) == 0

    def test_unread_count(self, store, make_message, alice, bob, carol):
        make_message(bob, alice)
        make_message(carol, alice)
        make_message(carol, alice, is_read=True)
        make_message(bob, alice, is_deleted=True)
        make_message(alice, bob)

        assert store.unread_count(alice.id) == 2
        store.mark_read(carol.id, alice.id)
        assert store.unread_count(alice.id) == 1

    def test_unread_count_without_messages(self, store, alice):
        assert store.unread_count(alice.id) == 0


class TestSoftDelete:
    def test_sender_can_delete(self, store, make_message, alice, bob):
        message = make_message(alice, bob)

        deleted = store.soft_delete(message.id, alice.id)

        assert deleted.is_deleted is True
        assert deleted.deleted_at is not None
        assert store.list_conversation(alice.id, bob.id).messages == []
        assert store.list_all_for_user(bob.id) == []

    def test_receiver_cannot_delete(self, store, make_message, alice, bob):
        message = make_message(alice, bob)
        with pytest.raises(UnauthorizedError):
            store.soft_delete(message.id, bob.id)
        assert store.get(message.id).is_deleted is False

    def test_missing_message(self, store, alice):
        with pytest.raises(NotFoundError):
            store.soft_delete(987654, alice.id)

    def test_delete_twice_keeps_first_timestamp(self, store, make_message, alice, bob):
        message = make_message(alice, bob)
        first = store.soft_delete(message.id, alice.id).deleted_at
        again = store.soft_delete(message.id, alice.id)
        assert again.is_deleted is True
        assert again.deleted_at == first


class TestSearch:
    def test_case_insensitive_substring(self, store, make_message, alice, bob, carol):
        older = make_message(alice, bob, "Lunch tomorrow?")
        newer = make_message(carol, alice, "lunch was great")
        make_message(bob, carol, "lunch without alice")
        make_message(alice, bob, "dinner")

        results = store.search(alice.id, "LUNCH")

        assert [m.id for m in results.messages] == [newer.id, older.id]
        assert results.total == 2
        assert results.total_pages == 1

    def test_excludes_deleted(self, store, make_message, alice, bob):
        make_message(alice, bob, "secret plan", is_deleted=True)
        results = store.search(alice.id, "plan")
        assert results.messages == []
        assert results.total == 0
        assert results.total_pages == 0

    def test_wildcards_are_literal(self, store, make_message, alice, bob):
        literal = make_message(alice, bob, "100% sure")
        make_message(alice, bob, "100 percent")
        results = store.search(alice.id, "100%")
        assert [m.id for m in results.messages] == [literal.id]

    def test_pagination_totals(self, store, make_message, alice, bob):
        for i in range(5):
            make_message(alice, bob, f"ping {i}")
        results = store.search(alice.id, "ping", page=2, limit=2)
        assert len(results.messages) == 2
        assert results.total == 5
        assert results.total_pages == 3
        assert results.page == 2

    @pytest.mark.parametrize("query_text", ["", "  "])
    def test_rejects_blank_query(self, store, alice, query_text):
        with pytest.raises(ValidationError):
            store.search(alice.id, query_text)


def test_storage_failure_is_transient(mocker, alice, bob):
    db = mocker.MagicMock(spec=Session)
    db.commit.side_effect = OperationalError("INSERT", {}, Exception("database is locked"))
    store = MessageStore(db)

    with pytest.raises(TransientStorageError):
        store.create(alice.id, bob.id, "hello")
    db.rollback.assert_called_once()
