import pytest
from bson import ObjectId

from app.core.exceptions import AuthenticationError, ResourceNotFoundError, ValidationError
from app.models.user import build_user_document
from app.schemas.security import SecuritySettings
from app.services import security_service
from app.services.crypto_service import hash_password, verify_password


@pytest.mark.asyncio
async def test_unset_flags_use_defaults(users):
    users.find_one.return_value = {"security": {"two_factor_auth": True, "device_tracking": False}}

    flags = await security_service.get_security_settings("USER1")

    assert flags == {
        "two_factor_auth": True,
        "login_notifications": True,
        "session_timeout": True,
        "device_tracking": False,
        "password_expiry": False,
    }


@pytest.mark.asyncio
async def test_new_account_stores_default_flags(users):
    document = build_user_document(
        user_id="USER1",
        fullname="Asha Rao",
        email="asha@example.com",
        phone="+919876543210",
        password_hash="hash",
        referral_code="ABCD1234",
        encrypted_referral_id="token",
    )
    users.find_one.return_value = document

    flags = await security_service.get_security_settings("USER1")

    assert flags == SecuritySettings().model_dump()
    assert document["security"]["session_timeout"] is True


@pytest.mark.asyncio
async def test_settings_for_unknown_user(users):
    users.find_one.return_value = None
    with pytest.raises(ResourceNotFoundError):
        await security_service.get_security_settings("GHOST")


@pytest.mark.asyncio
async def test_update_ignores_unknown_flags(users):
    users.find_one_and_update.return_value = {"security": {"password_expiry": True}}

    flags = await security_service.update_security_settings(
        "USER1", {"password_expiry": True, "role": True, "two_factor_auth": None}
    )

    changes = users.find_one_and_update.call_args.args[1]["$set"]
    assert changes["security.password_expiry"] is True
    assert "security.role" not in changes
    assert "security.two_factor_auth" not in changes
    assert flags["password_expiry"] is True


@pytest.mark.asyncio
async def test_update_requires_a_flag(users):
    with pytest.raises(ValidationError):
        await security_service.update_security_settings("USER1", {"role": True})


@pytest.mark.asyncio
async def test_change_password(users):
    user_oid = ObjectId()
    users.find_one.return_value = {"_id": user_oid, "account": {"password": hash_password("old-password")}}

    result = await security_service.change_password("USER1", "old-password", "new-password")

    assert result["success"] is True
    query, update = users.update_one.call_args_list[0].args
    assert query == {"_id": user_oid}
    assert verify_password("new-password", update["$set"]["account.password"])


@pytest.mark.asyncio
async def test_wrong_current_password_is_recorded(users):
    users.find_one.return_value = {"_id": ObjectId(), "account": {"password": hash_password("old-password")}}

    with pytest.raises(AuthenticationError):
        await security_service.change_password("USER1", "guess", "new-password")

    update = users.update_one.call_args.args[1]
    activity = update["$push"]["security.activities"]["$each"][0]
    assert activity["type"] == "password_change"
    assert activity["status"] == "failed"


@pytest.mark.asyncio
async def test_new_password_must_differ(users):
    users.find_one.return_value = {"_id": ObjectId(), "account": {"password": hash_password("same-password")}}

    with pytest.raises(ValidationError):
        await security_service.change_password("USER1", "same-password", "same-password")
    users.update_one.assert_not_called()
