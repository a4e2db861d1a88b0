"""Tests for web relay records and the jid resolver."""

import pytest

from webrelay.core.channel.jid_resolver import JidResolver
from webrelay.core.channel.models import (
    AckSet,
    FileEntry,
    PendingBatch,
    PendingMessage,
    RegisteredGroup,
    Registration,
    serialize_tree,
)


class TestJidResolver:
    def test_to_jid(self):
        assert JidResolver.to_jid("conv-abc") == "web:conv-abc"

    def test_to_conversation_id(self):
        assert JidResolver.to_conversation_id("web:conv-abc") == "conv-abc"

    def test_to_conversation_id_keeps_inner_colons(self):
        assert JidResolver.to_conversation_id("web:a:b") == "a:b"

    def test_to_conversation_id_foreign_unchanged(self):
        assert JidResolver.to_conversation_id("tg:42") == "tg:42"

    def test_owns(self):
        assert JidResolver.owns("web:x")
        assert not JidResolver.owns("x")


class TestRegistration:
    def test_from_payload_minimal(self):
        reg = Registration.from_payload({"conversationId": "c1", "name": "Main", "folder": "web-c1"})
        assert reg.conversation_id == "c1"
        assert reg.jid == "web:c1"
        assert reg.requires_trigger is False
        assert reg.trigger == ""

    def test_missing_conversation_id(self):
        with pytest.raises(ValueError):
            Registration.from_payload({"name": "Main"})

    def test_registered_group_from_registration(self):
        reg = Registration(conversation_id="c1", name="Main", folder="f", requires_trigger=True, trigger="@a")
        group = RegisteredGroup.from_registration(reg)
        assert (group.name, group.folder, group.trigger, group.requires_trigger) == ("Main", "f", "@a", True)
        assert group.added_at


class TestRegisteredGroup:
    def test_dict_roundtrip(self):
        group = RegisteredGroup(name="Main", folder="f", added_at="2026-01-01T00:00:00+00:00")
        assert RegisteredGroup.from_dict(group.to_dict()) == group


class TestPendingMessage:
    def test_to_new_message(self):
        msg = PendingMessage.from_payload({
            "id": "m1",
            "conversationId": "c1",
            "senderName": "Alice",
            "content": "hi",
            "createdAt": "2026-01-01T00:00:00Z",
        }).to_new_message()
        assert msg.chat_jid == "web:c1"
        assert msg.sender == "user@web:c1"
        assert msg.sender_name == "Alice"
        assert msg.timestamp == "2026-01-01T00:00:00Z"

    @pytest.mark.parametrize("sender_name", [None, ""])
    def test_sender_name_fallback(self, sender_name):
        msg = PendingMessage.from_payload({
            "id": "m1", "conversationId": "c1", "senderName": sender_name, "content": "hi",
        }).to_new_message()
        assert msg.sender_name == "User"

    def test_missing_id(self):
        with pytest.raises(ValueError):
            PendingMessage.from_payload({"conversationId": "c1"})


class TestPendingBatch:
    def test_non_object_payload(self):
        with pytest.raises(ValueError):
            PendingBatch.from_payload(["not", "an", "object"])

    def test_missing_arrays(self):
        batch = PendingBatch.from_payload({})
        assert batch.registrations == []
        assert batch.messages == []

    def test_skips_malformed(self):
        batch = PendingBatch.from_payload({
            "registrations": [{"conversationId": "c1"}, 42],
            "messages": [{"id": "m1"}],
        })
        assert [r.conversation_id for r in batch.registrations] == ["c1"]
        assert batch.messages == []
        assert [s["kind"] for s in batch.skipped] == ["registration", "message"]


class TestAckSet:
    def test_dedup_keeps_first_seen_order(self):
        acks = AckSet()
        for cid in ["b", "a", "b"]:
            acks.add_conversation(cid)
        acks.add_message("m2")
        acks.add_message("m1")
        acks.add_message("m2")
        assert acks.to_payload() == {"messageIds": ["m2", "m1"], "conversationIds": ["b", "a"]}

    def test_is_empty(self):
        acks = AckSet()
        assert acks.is_empty()
        acks.add_message("m1")
        assert not acks.is_empty()


class TestFileEntry:
    def test_file_has_no_children_key(self):
        assert FileEntry(name="a.txt", type="file").to_dict() == {"name": "a.txt", "type": "file"}

    def test_empty_dir_keeps_children(self):
        assert FileEntry(name="d", type="dir", children=[]).to_dict() == {"name": "d", "type": "dir", "children": []}

    def test_serialize_mixed_tree(self):
        tree = [FileEntry(name="d", type="dir", children=[]), {"name": "x", "type": "file"}]
        assert serialize_tree(tree) == [
            {"name": "d", "type": "dir", "children": []},
            {"name": "x", "type": "file"},
        ]
