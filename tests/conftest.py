"""Pytest configuration and fixtures.

Redis is replaced by fakeredis (with Lua support), so the same scripts and
MULTI blocks that run in production run here.
"""

import os

import fakeredis
import pytest
from fastapi.testclient import TestClient

# Keep test output readable; set before the app module configures logging
os.environ.setdefault("LOG_LEVEL", "WARNING")

from admission import AdmissionGate  # noqa: E402
from app import create_app  # noqa: E402
from backend import RedisBackend  # noqa: E402
from message_log import MessageLog  # noqa: E402
from registry import RoomRegistry  # noqa: E402


@pytest.fixture
def fake_redis():
    """A fresh in-memory Redis server per test."""
    server = fakeredis.FakeServer()
    client = fakeredis.FakeRedis(server=server, decode_responses=True)
    yield client
    client.flushall()


@pytest.fixture
def backend(fake_redis) -> RedisBackend:
    return RedisBackend(fake_redis)


@pytest.fixture
def registry(backend) -> RoomRegistry:
    return RoomRegistry(backend)


@pytest.fixture
def gate(registry) -> AdmissionGate:
    return AdmissionGate(registry)


@pytest.fixture
def message_log(backend, registry) -> MessageLog:
    return MessageLog(backend, registry)


@pytest.fixture
def room_id(registry) -> str:
    return registry.create_room()


@pytest.fixture
def app(backend):
    return create_app(backend=backend)


@pytest.fixture
def make_client(app):
    """Factory for independent HTTP clients, one cookie jar per participant.

    Usage:
        def test_something(make_client):
            alice, bob = make_client(), make_client()
    """
    clients = []

    def _make():
        client = TestClient(app)
        clients.append(client)
        return client

    yield _make
    for client in clients:
        client.close()


@pytest.fixture
def client(make_client) -> TestClient:
    return make_client()
