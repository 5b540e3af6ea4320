"""Tests for RoomRegistry."""

import pytest

from constants import ROOM_TTL_SECONDS
from errors import InvalidInput, RoomNotFound, Unauthorized
from redis_keys import room_keys
from registry import AdmitResult

TOKEN_A = "a" * 32
TOKEN_B = "b" * 32
TOKEN_C = "c" * 32


class TestCreateRoom:
    def test_creates_record_with_ttl(self, registry, fake_redis):
        room_id = registry.create_room()

        assert len(room_id) == 32
        record = fake_redis.hgetall(room_keys(room_id)["meta"])
        assert "created_at" in record
        assert ROOM_TTL_SECONDS - 2 <= registry.get_remaining_ttl(room_id) <= ROOM_TTL_SECONDS

    def test_ids_are_unique(self, registry):
        assert len({registry.create_room() for _ in range(20)}) == 20


class TestRemainingTTL:
    def test_unknown_room(self, registry):
        with pytest.raises(RoomNotFound):
            registry.get_remaining_ttl("0" * 32)

    def test_expired_room_looks_missing(self, registry, room_id, fake_redis):
        fake_redis.delete(room_keys(room_id)["meta"])

        with pytest.raises(RoomNotFound):
            registry.get_remaining_ttl(room_id)

    def test_malformed_id(self, registry):
        with pytest.raises(InvalidInput):
            registry.get_remaining_ttl("../etc/passwd")

    def test_read_realigns_connected_list(self, registry, room_id, fake_redis):
        keys = room_keys(room_id)
        registry.admit_token(room_id, TOKEN_A)
        fake_redis.pexpire(keys["meta"], 120_000)

        registry.get_remaining_ttl(room_id)

        assert abs(fake_redis.pttl(keys["connected"]) - fake_redis.pttl(keys["meta"])) < 100


class TestMembership:
    def test_admit_up_to_two(self, registry, room_id):
        assert registry.admit_token(room_id, TOKEN_A) is AdmitResult.ADMITTED
        assert registry.admit_token(room_id, TOKEN_B) is AdmitResult.ADMITTED
        assert registry.admit_token(room_id, TOKEN_C) is AdmitResult.FULL

    def test_existing_member(self, registry, room_id):
        registry.admit_token(room_id, TOKEN_A)
        assert registry.admit_token(room_id, TOKEN_A) is AdmitResult.ALREADY_MEMBER

    def test_admit_to_missing_room(self, registry):
        assert registry.admit_token("0" * 32, TOKEN_A) is AdmitResult.ROOM_NOT_FOUND

    def test_is_token_connected(self, registry, room_id):
        registry.admit_token(room_id, TOKEN_A)

        assert registry.is_token_connected(room_id, TOKEN_A) is True
        assert registry.is_token_connected(room_id, TOKEN_B) is False
        assert registry.is_token_connected(room_id, None) is False
        assert registry.is_token_connected("0" * 32, TOKEN_A) is False

    def test_require_live_member(self, registry, room_id):
        registry.admit_token(room_id, TOKEN_A)
        registry.require_live_member(room_id, TOKEN_A)

        with pytest.raises(Unauthorized):
            registry.require_live_member(room_id, TOKEN_B)
        with pytest.raises(Unauthorized):
            registry.require_live_member(room_id, None)

    def test_require_live_member_after_destroy(self, registry, room_id):
        """Once the room is gone, members and strangers alike get RoomNotFound."""
        registry.admit_token(room_id, TOKEN_A)
        registry.destroy_room(room_id)

        with pytest.raises(RoomNotFound):
            registry.require_live_member(room_id, TOKEN_A)
        with pytest.raises(RoomNotFound):
            registry.require_live_member(room_id, TOKEN_B)

    def test_require_live_member_destroy_during_check(self, registry, room_id, monkeypatch):
        registry.admit_token(room_id, TOKEN_A)
        original_check = registry.is_token_connected

        def destroy_then_check(rid, token):
            registry.destroy_room(rid)
            return original_check(rid, token)

        monkeypatch.setattr(registry, "is_token_connected", destroy_then_check)

        with pytest.raises(RoomNotFound):
            registry.require_live_member(room_id, TOKEN_A)


class TestDestroyRoom:
    def test_removes_every_key(self, registry, message_log, room_id, fake_redis):
        registry.admit_token(room_id, TOKEN_A)
        message_log.append(room_id, TOKEN_A, "alice", "hi")

        assert registry.destroy_room(room_id) is True

        assert fake_redis.exists(*room_keys(room_id).values()) == 0
        with pytest.raises(RoomNotFound):
            registry.get_remaining_ttl(room_id)
        assert registry.is_token_connected(room_id, TOKEN_A) is False

    def test_idempotent(self, registry, room_id):
        assert registry.destroy_room(room_id) is True
        assert registry.destroy_room(room_id) is False

    def test_admission_after_destroy(self, registry, room_id, fake_redis):
        registry.destroy_room(room_id)

        assert registry.admit_token(room_id, TOKEN_A) is AdmitResult.ROOM_NOT_FOUND
        assert fake_redis.exists(room_keys(room_id)["connected"]) == 0
