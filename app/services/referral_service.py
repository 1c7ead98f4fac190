"""
app/services/referral_service.py

Purpose: Referral ledger

- Referral data with encrypted identifiers and derived stats
- Signup and first-order bonuses across referrer and referred user
- Reward claims (single credit, expiry enforced)
- Referral settings and public code validation
"""

from typing import Any, Dict, List, Optional, Tuple

from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo.errors import OperationFailure, PyMongoError

from app.db.mongo import get_client, get_users_collection
from app.models.user import (
    ReferralStatus,
    RewardType,
    active_user_query,
    build_referral_entry,
    build_reward,
    empty_referral_stats,
)
from app.services.activity_service import append_activity
from app.services.crypto_service import EncryptionError, decrypt_identifier, encrypt_identifier
from app.core.config import settings
from app.core.exceptions import (
    ConflictError,
    DatabaseError,
    ExpiredError,
    ResourceNotFoundError,
    ValidationError,
)
from app.core.logging import get_logger, LogContext
from utils.constants import (
    ACTIVITY_TYPE_REWARD_CLAIMED,
    FIRST_ORDER_BONUS,
    FIRST_ORDER_REFERRED_EXPIRY_DAYS,
    FIRST_ORDER_REFERRER_EXPIRY_DAYS,
    REFERRAL_BASE_REWARD,
    REFERRAL_BASE_REWARD_EXPIRY_DAYS,
    REFERRAL_SETTINGS_KEYS,
    SIGNUP_BONUS,
    SIGNUP_BONUS_EXPIRY_DAYS,
)
from utils.time_utils import is_expired, utc_now
from utils.validation_utils import normalize_referral_code, parse_object_id, validate_referral_code_format

logger = get_logger(__name__)

# Server error code for "Transaction numbers are only allowed on a replica set member or mongos"
TRANSACTIONS_UNSUPPORTED_CODE = 20

Write = Tuple[Dict[str, Any], Dict[str, Any]]


def derive_stats(stats: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Stored counters plus the derived conversion rate (percent, 2 decimals).
    """
    derived = {**empty_referral_stats(), **(stats or {})}
    total = derived["total_referrals"]
    derived["referral_conversion_rate"] = (
        round(derived["successful_referrals"] / total * 100, 2) if total else 0.0
    )
    return derived


def ensure_claimable(reward: Dict[str, Any], now=None) -> None:
    """
    Raises if the reward cannot be claimed.

    Expiry is checked before the claimed flag, so an expired reward always
    reports Expired.

    Raises:
        ExpiredError: If the reward's expiry has passed
        ConflictError: If the reward was already claimed
    """
    if is_expired(reward.get("expires_at"), now):
        raise ExpiredError("Reward has expired")
    if reward.get("claimed"):
        raise ConflictError("Reward already claimed")


def _can_refer(owner: Optional[Dict[str, Any]]) -> bool:
    """A code only counts while its owner is active, not banned and not deleted."""
    status = (owner or {}).get("status") or {}
    return bool(
        owner
        and status.get("is_active", False)
        and not status.get("is_banned", False)
        and not status.get("is_deleted", False)
    )


def _stats_inc(**amounts: int) -> Dict[str, int]:
    return {f"referral.stats.{key}": value for key, value in amounts.items() if value}


class ReferralService:
    """Service for the per-user referral ledger."""

    def __init__(self):
        self.collection: Optional[AsyncIOMotorCollection] = None

    def _get_collection(self) -> AsyncIOMotorCollection:
        """Get users collection."""
        if self.collection is None:
            self.collection = get_users_collection()
        return self.collection

    # ============================================================
    # MULTI-DOCUMENT WRITES
    # ============================================================

    async def _write_in_transaction(self, writes: List[Write]) -> None:
        users = self._get_collection()
        async with await get_client().start_session() as session:
            async with session.start_transaction():
                for query, update in writes:
                    result = await users.update_one(query, update, session=session)
                    if result.matched_count == 0:
                        raise ConflictError("Referral ledger changed concurrently")

    async def _write_with_compensation(self, writes: List[Write], compensations: List[Write]) -> None:
        """
        Applies writes one by one; on failure undoes the applied ones in reverse.

        compensations[i] must undo writes[i].
        """
        users = self._get_collection()
        applied = 0
        try:
            for query, update in writes:
                result = await users.update_one(query, update)
                if result.matched_count == 0:
                    raise ConflictError("Referral ledger changed concurrently")
                applied += 1
        except Exception:
            for query, update in reversed(compensations[:applied]):
                try:
                    await users.update_one(query, update)
                except PyMongoError as undo_error:
                    logger.error(
                        f"Compensating referral write failed: {str(undo_error)}",
                        extra={"query": query},
                        exc_info=True
                    )
            raise

    async def _apply_writes(self, writes: List[Write], compensations: List[Write]) -> None:
        """
        Applies related writes to several user documents as one unit.

        Uses a transaction when the deployment supports it, otherwise
        sequential writes with compensation.
        """
        if settings.MONGODB_TRANSACTIONS_ENABLED:
            try:
                await self._write_in_transaction(writes)
                return
            except OperationFailure as e:
                if e.code != TRANSACTIONS_UNSUPPORTED_CODE:
                    raise
                logger.warning("Deployment does not support transactions; using compensating writes")

        await self._write_with_compensation(writes, compensations)

    # ============================================================
    # READS
    # ============================================================

    async def get_referral_data(self, user_id: str) -> Dict[str, Any]:
        """
        Returns the user's referral ledger with identifiers encrypted.

        Raises:
            ResourceNotFoundError: If the user does not exist
        """
        users = self._get_collection()
        user = await users.find_one(active_user_query(user_id), {"referral": 1})
        if not user:
            raise ResourceNotFoundError("User not found")

        referral = user.get("referral") or {}
        now = utc_now()

        referred_by = referral.get("referred_by")
        if referred_by and referred_by.get("user_id"):
            referred_by = {
                "user_id": encrypt_identifier(referred_by["user_id"]),
                "fullname": referred_by.get("fullname"),
                "referral_code": referred_by.get("referral_code"),
                "joined_at": referred_by.get("joined_at"),
                "rewards_claimed": referred_by.get("rewards_claimed", False),
                "rewards_claimed_at": referred_by.get("rewards_claimed_at"),
            }
        else:
            referred_by = None

        referrals = [
            {
                "id": encrypt_identifier(str(entry["_id"])),
                "user_id": encrypt_identifier(entry["user_id"]),
                "fullname": entry.get("fullname"),
                "email": entry.get("email"),
                "joined_at": entry.get("joined_at"),
                "status": entry.get("status"),
                "reward_earned": entry.get("reward_earned", 0),
                "reward_claimed": entry.get("reward_claimed", False),
                "order_completed": entry.get("order_completed", False),
                "first_order_date": entry.get("first_order_date"),
            }
            for entry in referral.get("referrals") or []
        ]

        rewards = [
            {
                "id": encrypt_identifier(str(reward["_id"])),
                "type": reward.get("type"),
                "amount": reward.get("amount", 0),
                "description": reward.get("description"),
                "earned_at": reward.get("earned_at"),
                "claimed": reward.get("claimed", False),
                "claimed_at": reward.get("claimed_at"),
                "expires_at": reward.get("expires_at"),
                "expired": is_expired(reward.get("expires_at"), now),
            }
            for reward in referral.get("rewards") or []
        ]

        stored_settings = referral.get("settings") or {}
        return {
            "referral_code": referral.get("referral_code"),
            # Stored pre-encrypted at account creation
            "referral_id": referral.get("referral_id"),
            "referred_by": referred_by,
            "referrals": referrals,
            "rewards": rewards,
            "stats": derive_stats(referral.get("stats")),
            "settings": {key: stored_settings.get(key, True) for key in REFERRAL_SETTINGS_KEYS},
        }

    async def get_referral_stats(self, user_id: str) -> Dict[str, Any]:
        """
        Lighter view: code, stats and reward counts.
        """
        users = self._get_collection()
        user = await users.find_one(
            active_user_query(user_id),
            {"referral.referral_code": 1, "referral.stats": 1, "referral.rewards.claimed": 1}
        )
        if not user:
            raise ResourceNotFoundError("User not found")

        referral = user.get("referral") or {}
        rewards = referral.get("rewards") or []
        return {
            "referral_code": referral.get("referral_code"),
            "stats": derive_stats(referral.get("stats")),
            "total_rewards": len(rewards),
            "unclaimed_rewards": sum(1 for reward in rewards if not reward.get("claimed")),
        }

    # ============================================================
    # SIGNUP / FIRST ORDER
    # ============================================================

    async def process_referral_signup(self, new_user_id: str, referral_code: str) -> bool:
        """
        Links a newly created user to the owner of `referral_code`.

        Referrer: gains a verified referral entry and a referral bonus.
        New user: gains referred_by and a signup bonus.

        Returns:
            True if linked; False if the code or user is unknown, the code
            owner is inactive, banned or deleted, the code is the user's own, or
            the user already has a referrer

        Raises:
            DatabaseError: If the writes fail
        """
        with LogContext(user_id=new_user_id, operation="process_referral_signup"):
            code = normalize_referral_code(referral_code)
            if not code:
                return False

            users = self._get_collection()
            referrer = await users.find_one({"referral.referral_code": code})
            if not referrer:
                logger.info("Referral code not found", extra={"referral_code": code})
                return False
            if not _can_refer(referrer):
                logger.info(
                    "Referral code owner cannot refer",
                    extra={"referral_code": code, "referrer_id": referrer.get("user_id")}
                )
                return False

            new_user = await users.find_one(active_user_query(new_user_id))
            if not new_user:
                return False

            if referrer["user_id"] == new_user_id:
                logger.warning("Self-referral rejected", extra={"user_id": new_user_id})
                return False

            if (new_user.get("referral") or {}).get("referred_by"):
                logger.info("User already has a referrer", extra={"user_id": new_user_id})
                return False

            now = utc_now()
            entry = build_referral_entry(new_user, REFERRAL_BASE_REWARD, now)
            referrer_reward = build_reward(
                RewardType.REFERRAL_BONUS,
                REFERRAL_BASE_REWARD,
                f"Referral bonus for inviting {new_user.get('fullname')}",
                REFERRAL_BASE_REWARD_EXPIRY_DAYS,
                now,
            )
            signup_reward = build_reward(
                RewardType.SIGNUP_BONUS,
                SIGNUP_BONUS,
                "Welcome bonus for joining via referral",
                SIGNUP_BONUS_EXPIRY_DAYS,
                now,
            )
            referred_by = {
                "user_id": referrer["user_id"],
                "fullname": referrer.get("fullname"),
                "referral_code": code,
                "joined_at": now,
                "rewards_claimed": False,
                "rewards_claimed_at": None,
            }

            writes: List[Write] = [
                (
                    {"user_id": new_user_id, "referral.referred_by": None},
                    {
                        "$set": {"referral.referred_by": referred_by, "updated_at": now},
                        "$push": {"referral.rewards": signup_reward},
                        "$inc": _stats_inc(total_rewards_earned=SIGNUP_BONUS, pending_rewards=SIGNUP_BONUS),
                    },
                ),
                (
                    {"_id": referrer["_id"]},
                    {
                        "$set": {"updated_at": now},
                        "$push": {"referral.referrals": entry, "referral.rewards": referrer_reward},
                        "$inc": _stats_inc(
                            total_referrals=1,
                            total_rewards_earned=REFERRAL_BASE_REWARD,
                            pending_rewards=REFERRAL_BASE_REWARD,
                        ),
                    },
                ),
            ]
            compensations: List[Write] = [
                (
                    {"user_id": new_user_id},
                    {
                        "$set": {"referral.referred_by": None},
                        "$pull": {"referral.rewards": {"_id": signup_reward["_id"]}},
                        "$inc": _stats_inc(total_rewards_earned=-SIGNUP_BONUS, pending_rewards=-SIGNUP_BONUS),
                    },
                ),
                (
                    {"_id": referrer["_id"]},
                    {
                        "$pull": {
                            "referral.referrals": {"_id": entry["_id"]},
                            "referral.rewards": {"_id": referrer_reward["_id"]},
                        },
                        "$inc": _stats_inc(
                            total_referrals=-1,
                            total_rewards_earned=-REFERRAL_BASE_REWARD,
                            pending_rewards=-REFERRAL_BASE_REWARD,
                        ),
                    },
                ),
            ]

            try:
                await self._apply_writes(writes, compensations)
            except ConflictError:
                logger.info("Referral signup lost a race; user already referred")
                return False
            except PyMongoError as e:
                logger.error(f"Referral signup failed: {str(e)}", exc_info=True)
                raise DatabaseError("Failed to process referral signup") from e

            logger.info(
                "Referral signup processed",
                extra={"user_id": new_user_id, "referrer_id": referrer["user_id"]}
            )
            return True

    async def process_referral_first_order(self, user_id: str) -> bool:
        """
        Completes the referral for a referred user's first order.

        Best-effort: failures are logged and never raised.

        Returns:
            True if bonuses were granted
        """
        with LogContext(user_id=user_id, operation="process_referral_first_order"):
            try:
                users = self._get_collection()
                user = await users.find_one(
                    active_user_query(user_id),
                    {"user_id": 1, "fullname": 1, "referral.referred_by": 1}
                )
                referred_by = ((user or {}).get("referral") or {}).get("referred_by")
                if not user or not referred_by or not referred_by.get("user_id"):
                    return False

                referrer_id = referred_by["user_id"]
                now = utc_now()
                referrer_reward = build_reward(
                    RewardType.FIRST_ORDER_BONUS,
                    FIRST_ORDER_BONUS,
                    f"First order bonus for {user.get('fullname')}'s first order",
                    FIRST_ORDER_REFERRER_EXPIRY_DAYS,
                    now,
                )
                referred_reward = build_reward(
                    RewardType.FIRST_ORDER_BONUS,
                    FIRST_ORDER_BONUS,
                    "First order completion bonus",
                    FIRST_ORDER_REFERRED_EXPIRY_DAYS,
                    now,
                )

                writes: List[Write] = [
                    (
                        {
                            "user_id": referrer_id,
                            "referral.referrals": {
                                "$elemMatch": {"user_id": user_id, "order_completed": False}
                            },
                        },
                        {
                            "$set": {
                                "referral.referrals.$.status": ReferralStatus.COMPLETED.value,
                                "referral.referrals.$.order_completed": True,
                                "referral.referrals.$.first_order_date": now,
                                "updated_at": now,
                            },
                            "$inc": {
                                "referral.referrals.$.reward_earned": FIRST_ORDER_BONUS,
                                **_stats_inc(
                                    successful_referrals=1,
                                    total_rewards_earned=FIRST_ORDER_BONUS,
                                    pending_rewards=FIRST_ORDER_BONUS,
                                ),
                            },
                            "$push": {"referral.rewards": referrer_reward},
                        },
                    ),
                    (
                        {"user_id": user_id},
                        {
                            "$push": {"referral.rewards": referred_reward},
                            "$inc": _stats_inc(
                                total_rewards_earned=FIRST_ORDER_BONUS,
                                pending_rewards=FIRST_ORDER_BONUS,
                            ),
                        },
                    ),
                ]
                compensations: List[Write] = [
                    (
                        {
                            "user_id": referrer_id,
                            "referral.referrals": {
                                "$elemMatch": {"user_id": user_id, "order_completed": True}
                            },
                        },
                        {
                            "$set": {
                                "referral.referrals.$.status": ReferralStatus.VERIFIED.value,
                                "referral.referrals.$.order_completed": False,
                                "referral.referrals.$.first_order_date": None,
                            },
                            "$inc": {
                                "referral.referrals.$.reward_earned": -FIRST_ORDER_BONUS,
                                **_stats_inc(
                                    successful_referrals=-1,
                                    total_rewards_earned=-FIRST_ORDER_BONUS,
                                    pending_rewards=-FIRST_ORDER_BONUS,
                                ),
                            },
                            "$pull": {"referral.rewards": {"_id": referrer_reward["_id"]}},
                        },
                    ),
                    (
                        {"user_id": user_id},
                        {
                            "$pull": {"referral.rewards": {"_id": referred_reward["_id"]}},
                            "$inc": _stats_inc(
                                total_rewards_earned=-FIRST_ORDER_BONUS,
                                pending_rewards=-FIRST_ORDER_BONUS,
                            ),
                        },
                    ),
                ]

                await self._apply_writes(writes, compensations)
                logger.info("First order referral bonus granted", extra={"referrer_id": referrer_id})
                return True

            except ConflictError:
                logger.info("First order referral already processed")
                return False
            except Exception as e:
                logger.error(f"Failed to process referral first order: {str(e)}", exc_info=True)
                return False

    # ============================================================
    # CLAIMS & SETTINGS
    # ============================================================

    @staticmethod
    def _resolve_reward_id(reward_id: str):
        """
        Accepts the encrypted id from get_referral_data or a raw ObjectId hex.
        """
        oid = parse_object_id(reward_id)
        if oid is not None:
            return oid
        try:
            return parse_object_id(decrypt_identifier(reward_id))
        except EncryptionError:
            return None

    async def claim_reward(self, user_id: str, reward_id: str, ip_address: Optional[str] = None) -> bool:
        """
        Claims a reward and credits its amount to the user's loyalty points.

        The write is conditional on the reward still being unclaimed, so
        concurrent claims credit the points once.

        Raises:
            ResourceNotFoundError: If the user or reward does not exist
            ExpiredError: If the reward has expired
            ConflictError: If the reward was already claimed
        """
        with LogContext(user_id=user_id, operation="claim_reward"):
            users = self._get_collection()
            user = await users.find_one(
                active_user_query(user_id),
                {"referral.rewards": 1, "referral.referred_by": 1}
            )
            if not user:
                raise ResourceNotFoundError("User not found")

            oid = self._resolve_reward_id(reward_id)
            referral = user.get("referral") or {}
            reward = next(
                (r for r in referral.get("rewards") or [] if oid is not None and r.get("_id") == oid),
                None
            )
            if reward is None:
                raise ResourceNotFoundError("Reward not found")

            now = utc_now()
            ensure_claimable(reward, now)

            amount = reward.get("amount", 0)
            changes: Dict[str, Any] = {
                "referral.rewards.$.claimed": True,
                "referral.rewards.$.claimed_at": now,
                "updated_at": now,
            }
            if reward.get("type") == RewardType.SIGNUP_BONUS.value and referral.get("referred_by"):
                changes["referral.referred_by.rewards_claimed"] = True
                changes["referral.referred_by.rewards_claimed_at"] = now

            result = await users.update_one(
                {
                    "_id": user["_id"],
                    "referral.rewards": {
                        "$elemMatch": {
                            "_id": oid,
                            "claimed": False,
                            "$or": [{"expires_at": None}, {"expires_at": {"$gt": now}}],
                        }
                    },
                },
                {
                    "$set": changes,
                    "$inc": {
                        "activity.loyalty_points": amount,
                        **_stats_inc(total_rewards_claimed=amount, pending_rewards=-amount),
                    },
                }
            )
            if result.modified_count == 0:
                raise ConflictError("Reward already claimed")

            logger.info(
                f"Reward claimed: {amount} points",
                extra={"user_id": user_id, "entity_id": str(oid)}
            )
            await append_activity(user_id, {
                "type": ACTIVITY_TYPE_REWARD_CLAIMED,
                "description": f"Claimed {reward.get('type')} reward of {amount} points",
                "ip_address": ip_address,
            })
            return True

    async def update_referral_settings(self, user_id: str, updates: Dict[str, Optional[bool]]) -> Dict[str, bool]:
        """
        Partially updates the sharing and notification preferences.

        Raises:
            ValidationError: If no recognised setting is supplied
            ResourceNotFoundError: If the user does not exist
        """
        changes = {
            f"referral.settings.{key}": bool(value)
            for key, value in updates.items()
            if key in REFERRAL_SETTINGS_KEYS and value is not None
        }
        if not changes:
            raise ValidationError("No referral settings provided")

        users = self._get_collection()
        result = await users.update_one(
            active_user_query(user_id),
            {"$set": {**changes, "updated_at": utc_now()}}
        )
        if result.matched_count == 0:
            raise ResourceNotFoundError("User not found")

        logger.info("Referral settings updated", extra={"user_id": user_id})
        user = await users.find_one(active_user_query(user_id), {"referral.settings": 1})
        stored = ((user or {}).get("referral") or {}).get("settings") or {}
        return {key: stored.get(key, True) for key in REFERRAL_SETTINGS_KEYS}

    async def validate_referral_code(self, referral_code: str) -> Dict[str, Any]:
        """
        Public check of a referral code before signup.

        Returns:
            {"valid": False} unless the owner exists and is active, not
            banned and not deleted
        """
        if not validate_referral_code_format(referral_code):
            return {"valid": False}

        try:
            users = self._get_collection()
            owner = await users.find_one(
                {"referral.referral_code": normalize_referral_code(referral_code)},
                {"fullname": 1, "status": 1}
            )
        except PyMongoError as e:
            logger.error(f"Referral code lookup failed: {str(e)}", exc_info=True)
            return {"valid": False}

        if not _can_refer(owner):
            return {"valid": False}

        return {
            "valid": True,
            "referrer_name": owner.get("fullname"),
            "bonus": SIGNUP_BONUS,
        }


# Global instance
_referral_service: Optional[ReferralService] = None


def get_referral_service() -> ReferralService:
    """Get or create global referral service instance."""
    global _referral_service
    if _referral_service is None:
        _referral_service = ReferralService()
    return _referral_service
