from unittest.mock import AsyncMock, MagicMock

import pytest

from app.db import mongo


def _client(hello):
    client = MagicMock()
    client.admin.command = AsyncMock(return_value=hello)
    return client


@pytest.mark.asyncio
@pytest.mark.parametrize("hello,supported", [
    ({"setName": "rs0", "isWritablePrimary": True}, True),
    ({"msg": "isdbgrid"}, True),
    ({"isWritablePrimary": True}, False),
])
async def test_transaction_support_follows_topology(monkeypatch, hello, supported):
    monkeypatch.setattr(mongo, "_client", _client(hello))

    deployment = await mongo.describe_deployment()

    assert deployment["transactions_supported"] is supported


@pytest.mark.asyncio
async def test_describe_requires_connection(monkeypatch):
    monkeypatch.setattr(mongo, "_client", None)
    with pytest.raises(RuntimeError):
        await mongo.describe_deployment()


def test_collections_require_connection(monkeypatch):
    monkeypatch.setattr(mongo, "_database", None)
    with pytest.raises(RuntimeError):
        mongo.get_users_collection()


@pytest.mark.asyncio
async def test_health_check_without_client(monkeypatch):
    monkeypatch.setattr(mongo, "_client", None)
    assert await mongo.check_database_health() is False
