"""Tests for the encrypted message pipeline."""
import os
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import text

from groupvault.crypto import KeyEnvelope
from groupvault.errors import AuthenticationFailed, DecryptionFailed, NotAMember, NotFound, ValidationError
from groupvault.models.message import Message
from groupvault.services import group_service, message_service

OWNER = 21
ALICE = 22
OUTSIDER = 23
T0 = datetime(2026, 7, 1, 8, 0, tzinfo=timezone.utc)


@pytest.fixture
def group(db, envelope):
    group = group_service.create_group(db, envelope, "Ops", OWNER, kind="open")
    group_service.join(db, group.id, ALICE)
    return group


def _send_series(db, envelope, group, count):
    return [
        message_service.send_message(
            db, envelope, group.id, OWNER, f"message #{i}", now=T0 + timedelta(minutes=i)
        )
        for i in range(1, count + 1)
    ]


class TestSendMessage:
    def test_send_and_read_back(self, db, envelope, group):
        sent = message_service.send_message(db, envelope, group.id, ALICE, "hello team")
        assert sent.text == "hello team"
        assert sent.sender_id == ALICE

        listed = message_service.list_messages(db, envelope, group.id, OWNER)
        assert [(m.id, m.text) for m in listed] == [(sent.id, "hello team")]

    def test_plaintext_never_stored(self, db, envelope, group):
        message_service.send_message(db, envelope, group.id, ALICE, "the vault code is 4711")
        row = db.query(Message).one()
        assert "4711" not in row.ciphertext
        raw = db.execute(text("SELECT ciphertext, nonce FROM messages")).all()
        db.commit()
        assert all("4711" not in c and "4711" not in n for c, n in raw)

    def test_unicode_round_trip(self, db, envelope, group):
        message_service.send_message(db, envelope, group.id, ALICE, "héllo ✓ 你好")
        assert message_service.list_messages(db, envelope, group.id, ALICE)[0].text == "héllo ✓ 你好"

    def test_empty_text_rejected(self, db, envelope, group):
        with pytest.raises(ValidationError):
            message_service.send_message(db, envelope, group.id, ALICE, "")

    def test_non_member_cannot_send(self, db, envelope, group):
        with pytest.raises(NotAMember):
            message_service.send_message(db, envelope, group.id, OUTSIDER, "let me in")
        assert db.query(Message).count() == 0
        db.commit()

    def test_former_member_cannot_send(self, db, envelope, group):
        group_service.leave(db, group.id, ALICE)
        with pytest.raises(NotAMember):
            message_service.send_message(db, envelope, group.id, ALICE, "still here?")

    def test_deleted_group(self, db, envelope):
        group = group_service.create_group(db, envelope, "Gone", OWNER)
        group_service.delete_group(db, group.id, OWNER)
        with pytest.raises(NotFound):
            message_service.send_message(db, envelope, group.id, OWNER, "anyone?")


class TestListMessages:
    def test_newest_first(self, db, envelope, group):
        sent = _send_series(db, envelope, group, 3)
        listed = message_service.list_messages(db, envelope, group.id, ALICE)
        assert [m.id for m in listed] == [m.id for m in reversed(sent)]

    def test_before_is_exclusive(self, db, envelope, group):
        sent = _send_series(db, envelope, group, 10)
        fifth = sent[4]
        page = message_service.list_messages(db, envelope, group.id, ALICE, before=fifth.created_at)
        assert [m.text for m in page] == ["message #4", "message #3", "message #2", "message #1"]

    def test_limit(self, db, envelope, group):
        _send_series(db, envelope, group, 5)
        page = message_service.list_messages(db, envelope, group.id, ALICE, limit=2)
        assert [m.text for m in page] == ["message #5", "message #4"]

    @pytest.mark.parametrize("limit", [0, -1, 101])
    def test_out_of_range_limit_uses_default(self, db, envelope, group, limit):
        _send_series(db, envelope, group, 3)
        assert len(message_service.list_messages(db, envelope, group.id, ALICE, limit=limit)) == 3

    def test_paging_backwards_visits_every_message(self, db, envelope, group):
        sent = _send_series(db, envelope, group, 7)
        seen, before = [], None
        while True:
            page = message_service.list_messages(db, envelope, group.id, ALICE, limit=3, before=before)
            if not page:
                break
            seen.extend(m.id for m in page)
            before = page[-1].created_at
        assert seen == [m.id for m in reversed(sent)]

    def test_non_member_cannot_read(self, db, envelope, group):
        _send_series(db, envelope, group, 1)
        with pytest.raises(NotAMember):
            message_service.list_messages(db, envelope, group.id, OUTSIDER)

    def test_banished_member_loses_read_access(self, db, envelope, group):
        _send_series(db, envelope, group, 1)
        group_service.banish(db, group.id, OWNER, ALICE)
        with pytest.raises(NotAMember):
            message_service.list_messages(db, envelope, group.id, ALICE)

    def test_messages_are_isolated_per_group(self, db, envelope, group):
        other = group_service.create_group(db, envelope, "Other", OWNER)
        message_service.send_message(db, envelope, other.id, OWNER, "elsewhere")
        assert message_service.list_messages(db, envelope, group.id, OWNER) == []


class TestDecryptionFailures:
    def test_tampered_row_fails_the_page(self, db, envelope, group):
        sent = _send_series(db, envelope, group, 2)
        row = db.get(Message, sent[0].id)
        row.ciphertext = ("B" if row.ciphertext[0] == "A" else "A") + row.ciphertext[1:]
        db.commit()

        with pytest.raises(DecryptionFailed) as excinfo:
            message_service.list_messages(db, envelope, group.id, ALICE)
        assert excinfo.value.message_id == sent[0].id
        assert isinstance(excinfo.value.__cause__, AuthenticationFailed)

    def test_wrong_master_key_cannot_open_group(self, db, envelope, group):
        _send_series(db, envelope, group, 1)
        stranger = KeyEnvelope(os.urandom(32))
        with pytest.raises(AuthenticationFailed):
            message_service.list_messages(db, stranger, group.id, ALICE)
