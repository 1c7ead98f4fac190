from unittest.mock import AsyncMock, MagicMock

import pytest
from bson import ObjectId
from pymongo.errors import DuplicateKeyError

from app.core.exceptions import ConflictError, ResourceNotFoundError, ValidationError
from app.services import user_service
from app.services.crypto_service import verify_password
from tests.fakes import FakeCursor, UserDocumentStore, insert_result, update_result


@pytest.fixture
def referrals(monkeypatch):
    service = MagicMock()
    service.process_referral_signup = AsyncMock(return_value=True)
    service.process_referral_first_order = AsyncMock(return_value=True)
    monkeypatch.setattr(user_service, "get_referral_service", lambda: service)
    return service


def _signup(**overrides):
    fields = {
        "fullname": "Asha Rao",
        "email": "Asha@Example.com",
        "phone": "+91 98765 43210",
        "password": "correct-horse",
    }
    fields.update(overrides)
    return fields


@pytest.mark.asyncio
async def test_duplicate_email_is_rejected(users):
    users.count_documents.return_value = 1

    with pytest.raises(ConflictError) as exc:
        await user_service.create_user(**_signup())

    assert "Email" in exc.value.message
    users.insert_one.assert_not_called()


@pytest.mark.asyncio
async def test_duplicate_phone_is_rejected(users):
    users.count_documents.side_effect = [0, 1]

    with pytest.raises(ConflictError) as exc:
        await user_service.create_user(**_signup())

    assert "Phone" in exc.value.message


@pytest.mark.asyncio
async def test_insert_race_on_email_is_a_conflict(users):
    users.insert_one.side_effect = DuplicateKeyError(
        "E11000 duplicate key error", 11000, {"keyPattern": {"account.email": 1}}
    )

    with pytest.raises(ConflictError):
        await user_service.create_user(**_signup())


@pytest.mark.asyncio
async def test_identifier_collision_is_retried(users):
    users.insert_one.side_effect = [
        DuplicateKeyError("E11000 duplicate key error index: referral_code_1", 11000, {}),
        insert_result(ObjectId()),
    ]
    users.find_one.return_value = None

    created = await user_service.create_user(**_signup())

    assert users.insert_one.await_count == 2
    assert created["referral"]["referral_code"]


@pytest.mark.asyncio
async def test_create_user_without_referral(users, referrals):
    users.insert_one.return_value = insert_result(ObjectId())
    users.find_one.return_value = None

    created = await user_service.create_user(**_signup(), ip_address="10.0.0.1")

    stored = users.insert_one.call_args.args[0]
    assert stored["account"]["email"] == "asha@example.com"
    assert verify_password("correct-horse", stored["account"]["password"])
    assert stored["security"]["role"] == "user"
    assert stored["referral"]["referred_by"] is None

    assert "password" not in created["account"]
    assert "tokens" not in created["security"]
    referrals.process_referral_signup.assert_not_called()

    activity = users.update_one.call_args.args[1]["$push"]["security.activities"]["$each"][0]
    assert activity["type"] == "account_created"


@pytest.mark.asyncio
async def test_create_user_applies_referral_code(users, referrals):
    users.insert_one.return_value = insert_result(ObjectId())
    users.find_one.return_value = None

    created = await user_service.create_user(**_signup(referral_code="FRIEND42"))

    referrals.process_referral_signup.assert_awaited_once_with(created["user_id"], "FRIEND42")


@pytest.mark.asyncio
async def test_unapplied_referral_does_not_fail_signup(users, referrals):
    referrals.process_referral_signup.return_value = False
    users.insert_one.return_value = insert_result(ObjectId())
    users.find_one.return_value = None

    created = await user_service.create_user(**_signup(referral_code="NOPE"))

    assert created["user_id"]


@pytest.mark.asyncio
async def test_get_user_not_found(users):
    users.find_one.return_value = None
    with pytest.raises(ResourceNotFoundError):
        await user_service.get_user("USER1")


@pytest.mark.asyncio
async def test_get_user_role(users):
    users.find_one.return_value = {"security": {"role": "admin"}}
    assert await user_service.get_user_role("USER1") == "admin"

    users.find_one.return_value = None
    assert await user_service.get_user_role("GHOST") is None


@pytest.mark.asyncio
async def test_update_profile_maps_nested_fields(users):
    users.find_one_and_update.return_value = {"user_id": "USER1", "account": {}, "security": {}}

    await user_service.update_profile("USER1", {"username": "asha", "gender": None, "role": "admin"})

    changes = users.find_one_and_update.call_args.args[1]["$set"]
    assert changes["account.username"] == "asha"
    assert "account.gender" not in changes
    assert "role" not in changes and "security.role" not in changes
    assert "last_profile_update" in changes


@pytest.mark.asyncio
async def test_update_profile_requires_fields(users):
    with pytest.raises(ValidationError):
        await user_service.update_profile("USER1", {"role": "admin"})


@pytest.mark.asyncio
async def test_ban_stamps_time_and_reason(users):
    users.find_one_and_update.return_value = {"user_id": "USER1"}

    await user_service.update_user_status("USER1", is_banned=True, ban_reason="Abuse")

    changes = users.find_one_and_update.call_args.args[1]["$set"]
    assert changes["status.is_banned"] is True
    assert changes["status.banned_at"] is not None
    assert changes["status.ban_reason"] == "Abuse"


@pytest.mark.asyncio
async def test_unban_clears_time_and_reason(users):
    users.find_one_and_update.return_value = {"user_id": "USER1"}

    await user_service.update_user_status("USER1", is_banned=False, ban_reason="ignored")

    changes = users.find_one_and_update.call_args.args[1]["$set"]
    assert changes["status.banned_at"] is None
    assert changes["status.ban_reason"] is None


@pytest.mark.asyncio
async def test_status_update_requires_fields(users):
    with pytest.raises(ValidationError):
        await user_service.update_user_status("USER1")


@pytest.mark.asyncio
async def test_status_update_unknown_user(users):
    users.find_one_and_update.return_value = None
    with pytest.raises(ResourceNotFoundError):
        await user_service.update_user_status("GHOST", is_active=False)


@pytest.mark.asyncio
async def test_delete_account_signs_out_everywhere(users):
    assert await user_service.delete_account("USER1") is True

    calls = [call.args for call in users.update_one.call_args_list]
    soft_delete, clear_tokens, activity = calls
    assert soft_delete[1]["$set"]["status.is_deleted"] is True
    assert clear_tokens == ({"user_id": "USER1"}, {"$set": {"security.tokens": []}})
    assert activity[1]["$push"]["security.activities"]["$each"][0]["type"] == "account_deleted"


@pytest.mark.asyncio
async def test_delete_already_deleted_account(users):
    users.update_one.return_value = update_result(matched=0, modified=0)
    with pytest.raises(ResourceNotFoundError):
        await user_service.delete_account("USER1")


@pytest.mark.asyncio
async def test_record_first_order_delegates_to_referrals(referrals):
    assert await user_service.record_first_order("USER1") is True
    referrals.process_referral_first_order.assert_awaited_once_with("USER1")


@pytest.mark.asyncio
async def test_list_users_search_is_escaped(users):
    users.count_documents.return_value = 0

    page = await user_service.list_users(search="a+b", role="user")

    query = users.find.call_args.args[0]
    assert query["security.role"] == "user"
    assert query["$or"][0]["fullname"]["$regex"] == r"a\+b"
    assert page == {"users": [], "total": 0, "page": 1, "total_pages": 0}


@pytest.mark.asyncio
async def test_user_statistics(users):
    users.count_documents.side_effect = [5, 4, 3, 1, 2, 1]
    users.aggregate.return_value = FakeCursor([
        {"_id": "user", "count": 4},
        {"_id": None, "count": 1},
    ])

    stats = await user_service.user_statistics()

    assert stats == {
        "total_users": 5,
        "active_users": 4,
        "verified_users": 3,
        "banned_users": 1,
        "deleted_users": 2,
        "recent_registrations": 1,
        "by_role": {"user": 4, "unknown": 1},
    }


def _member(points=0, favorites=None):
    return {
        "user_id": "USER1",
        "status": {"is_deleted": False},
        "activity": {"loyalty_points": points, "favorites": list(favorites or [])},
    }


@pytest.mark.asyncio
async def test_add_favorites_skips_duplicates(users):
    kitchen, other = ObjectId(), ObjectId()
    store = UserDocumentStore(_member(favorites=[kitchen])).install(users)

    favorites = await user_service.add_favorites("USER1", [str(kitchen), str(other)])

    assert favorites == [str(kitchen), str(other)]
    assert store.document["activity"]["favorites"] == [kitchen, other]
    assert await user_service.list_favorites("USER1") == favorites


@pytest.mark.asyncio
async def test_remove_favorite(users):
    kitchen, other = ObjectId(), ObjectId()
    UserDocumentStore(_member(favorites=[kitchen, other])).install(users)

    assert await user_service.remove_favorite("USER1", str(kitchen)) == [str(other)]
    assert await user_service.remove_favorite("USER1", str(kitchen)) == [str(other)]


@pytest.mark.asyncio
async def test_favorites_reject_malformed_ids(users):
    with pytest.raises(ValidationError) as exc:
        await user_service.add_favorites("USER1", [str(ObjectId()), "nope"])

    assert exc.value.details == {"kitchen_ids": ["nope"]}
    users.find_one_and_update.assert_not_called()


@pytest.mark.asyncio
async def test_favorites_for_unknown_user(users):
    users.find_one_and_update.return_value = None
    with pytest.raises(ResourceNotFoundError):
        await user_service.add_favorites("GHOST", [str(ObjectId())])


@pytest.mark.asyncio
@pytest.mark.parametrize("operation,points,expected", [
    ("add", 30, 130),
    ("subtract", 40, 60),
    ("subtract", 100, 0),
    ("set", 5, 5),
])
async def test_adjust_loyalty_points(users, operation, points, expected):
    store = UserDocumentStore(_member(points=100)).install(users)

    balance = await user_service.adjust_loyalty_points("USER1", points, operation)

    assert balance == expected
    assert store.document["activity"]["loyalty_points"] == expected


@pytest.mark.asyncio
async def test_subtracting_more_than_the_balance_is_rejected(users):
    store = UserDocumentStore(_member(points=20)).install(users)

    with pytest.raises(ValidationError):
        await user_service.adjust_loyalty_points("USER1", 21, "subtract")

    assert store.document["activity"]["loyalty_points"] == 20


@pytest.mark.asyncio
async def test_adjust_loyalty_points_unknown_user(users):
    UserDocumentStore({**_member(), "status": {"is_deleted": True}}).install(users)

    with pytest.raises(ResourceNotFoundError):
        await user_service.adjust_loyalty_points("USER1", 5, "subtract")


@pytest.mark.asyncio
@pytest.mark.parametrize("points,operation", [(-5, "add"), (5, "double")])
async def test_adjust_loyalty_points_rejects_bad_input(users, points, operation):
    with pytest.raises(ValidationError):
        await user_service.adjust_loyalty_points("USER1", points, operation)
    users.find_one_and_update.assert_not_called()
