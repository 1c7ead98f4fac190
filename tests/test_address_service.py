import pytest
from bson import ObjectId

from app.core.exceptions import ResourceNotFoundError, ValidationError
from app.models.user import build_address
from app.services import address_service
from app.services.address_service import active_addresses, resolve_active_address
from tests.fakes import UserDocumentStore, update_result


def _addresses():
    home = build_address({"label": "Home", "street": "1 MG Road", "city": "Pune"})
    office = {**build_address({"label": "Office", "city": "Pune"}), "is_deleted": True}
    gym = build_address({"label": "Gym", "city": "Pune"})
    return [home, office, gym]


def test_active_index_skips_deleted_entries():
    home, office, gym = _addresses()
    addresses = [home, office, gym]

    assert active_addresses(addresses) == [home, gym]
    assert resolve_active_address(addresses, 1) is gym
    assert resolve_active_address(addresses, 2) is None
    assert resolve_active_address(addresses, -1) is None


def test_new_address_defaults():
    address = build_address({"label": "Home", "city": "Pune"})
    assert address["is_deleted"] is False
    assert address["deleted_at"] is None
    assert address["landmark"] == ""
    assert isinstance(address["_id"], ObjectId)


@pytest.mark.asyncio
async def test_list_addresses_reports_active_index(users):
    users.find_one.return_value = {"addresses": _addresses()}

    listed = await address_service.list_addresses("USER1")

    assert [(a["label"], a["index"]) for a in listed] == [("Home", 0), ("Gym", 1)]
    assert isinstance(listed[0]["_id"], str)


@pytest.mark.asyncio
async def test_list_deleted_addresses(users):
    users.find_one.return_value = {"addresses": _addresses()}
    deleted = await address_service.list_deleted_addresses("USER1")
    assert [a["label"] for a in deleted] == ["Office"]


@pytest.mark.asyncio
async def test_add_address(users):
    existing = _addresses()
    users.find_one.side_effect = lambda *args, **kwargs: {"addresses": existing}

    def push(query, update):
        existing.append(update["$push"]["addresses"])
        return update_result()

    users.update_one.side_effect = push

    added = await address_service.add_address("USER1", {"label": "Parents", "city": "Nashik"})

    assert added["label"] == "Parents"
    assert added["index"] == 2


@pytest.mark.asyncio
async def test_update_targets_stored_entry_by_id(users):
    addresses = _addresses()
    users.find_one.return_value = {"addresses": addresses}

    await address_service.update_address("USER1", 1, {"street": "Gym Lane", "unknown": "ignored"})

    query, update = users.update_one.call_args.args
    assert query["addresses"]["$elemMatch"]["_id"] == addresses[2]["_id"]
    assert update["$set"]["addresses.$.street"] == "Gym Lane"
    assert "addresses.$.unknown" not in update["$set"]


@pytest.mark.asyncio
async def test_update_with_no_fields(users):
    with pytest.raises(ValidationError):
        await address_service.update_address("USER1", 0, {"unknown": "x"})


@pytest.mark.asyncio
async def test_update_out_of_range_index(users):
    users.find_one.return_value = {"addresses": _addresses()}
    with pytest.raises(ResourceNotFoundError):
        await address_service.update_address("USER1", 5, {"street": "x"})


@pytest.mark.asyncio
async def test_remove_address_soft_deletes_by_id(users):
    addresses = _addresses()
    users.find_one.return_value = {"addresses": addresses}

    assert await address_service.remove_address("USER1", 0) is True

    query, update = users.update_one.call_args.args
    assert query["addresses"]["$elemMatch"]["_id"] == addresses[0]["_id"]
    assert update["$set"]["addresses.$.is_deleted"] is True
    assert update["$set"]["addresses.$.deleted_at"] is not None


@pytest.mark.asyncio
async def test_remove_address_unknown_user(users):
    users.find_one.return_value = None
    with pytest.raises(ResourceNotFoundError):
        await address_service.remove_address("NOPE", 0)


@pytest.mark.asyncio
async def test_restore_address_returns_original_position(users):
    home, office, gym = _addresses()
    restored_office = {**office, "is_deleted": False, "deleted_at": None}
    users.find_one.return_value = {"addresses": [home, restored_office, gym]}

    restored = await address_service.restore_address("USER1", str(office["_id"]))

    assert restored["index"] == 1
    query = users.update_one.call_args.args[0]
    assert query["addresses"]["$elemMatch"] == {"_id": office["_id"], "is_deleted": True}


@pytest.mark.asyncio
async def test_restore_address_not_deleted(users):
    users.update_one.return_value = update_result(matched=0, modified=0)
    with pytest.raises(ResourceNotFoundError):
        await address_service.restore_address("USER1", str(ObjectId()))


@pytest.mark.asyncio
async def test_restore_address_malformed_id(users):
    with pytest.raises(ValidationError):
        await address_service.restore_address("USER1", "nope")


@pytest.mark.asyncio
async def test_removed_address_is_unreachable_by_active_index(users):
    home, office, gym = [build_address({"label": label, "city": "Pune"}) for label in ("Home", "Office", "Gym")]
    store = UserDocumentStore({"user_id": "USER1", "addresses": [home, office, gym]}).install(users)

    assert await address_service.remove_address("USER1", 1) is True

    listed = await address_service.list_addresses("USER1")
    assert [(a["label"], a["index"]) for a in listed] == [("Home", 0), ("Gym", 1)]

    stored = store.document["addresses"]
    for index in range(len(stored)):
        resolved = resolve_active_address(stored, index)
        assert resolved is None or resolved["_id"] != office["_id"]
    assert stored[1]["is_deleted"] is True and stored[1]["deleted_at"] is not None

    with pytest.raises(ResourceNotFoundError):
        await address_service.remove_address("USER1", 2)

    updated = await address_service.update_address("USER1", 1, {"street": "2 FC Road"})
    assert updated["label"] == "Gym"
    assert store.document["addresses"][1].get("street") != "2 FC Road"
