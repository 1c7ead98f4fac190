import pytest

from app.db.indexes import create_indexes, drop_all_indexes


def _created(collection):
    return {call.kwargs["name"]: call for call in collection.create_index.call_args_list}


@pytest.mark.asyncio
async def test_identity_and_referral_fields_are_unique(collections, users):
    await create_indexes()

    created = _created(users)
    for name in ("user_id_unique", "email_unique", "phone_unique", "referral_code_unique"):
        assert created[name].kwargs["unique"] is True
    assert created["referral_id_unique"].kwargs["sparse"] is True


@pytest.mark.asyncio
async def test_every_intake_collection_is_indexed(collections):
    await create_indexes()

    for name, collection in collections.items():
        assert collection.create_index.await_count >= 1, name


@pytest.mark.asyncio
async def test_drop_all_indexes(collections):
    await drop_all_indexes()

    for collection in collections.values():
        collection.drop_indexes.assert_awaited_once()
