"""
utils/constants.py

Purpose: Centralized domain constants

- Collection caps and expiry windows for sessions and activities
- Referral reward amounts and expiries
- Field whitelists shared by services and schemas

(Prevents hardcoding across the codebase)
"""

# ============================================================
# SESSIONS & SECURITY ACTIVITY
# ============================================================

MAX_SESSIONS = 10
MAX_ACTIVITIES = 20
SESSION_TTL_DAYS = 30

DEFAULT_ACTIVITY_SUMMARY_DAYS = 30
TOP_ACTIVITY_TYPES_LIMIT = 5

ACTIVITY_TYPE_LOGIN = "login"
ACTIVITY_TYPE_LOGOUT = "logout"
ACTIVITY_TYPE_PASSWORD_CHANGE = "password_change"
ACTIVITY_TYPE_SESSION_TERMINATED = "session_terminated"
ACTIVITY_TYPE_ACCOUNT_CREATED = "account_created"
ACTIVITY_TYPE_ACCOUNT_DELETED = "account_deleted"
ACTIVITY_TYPE_REWARD_CLAIMED = "reward_claimed"

ACTIVITY_STATUS_SUCCESS = "success"
ACTIVITY_STATUS_WARNING = "warning"
ACTIVITY_STATUS_FAILED = "failed"

# Seeded when a user with an empty log first reads it
BOOTSTRAP_ACTIVITY = {
    "type": ACTIVITY_TYPE_LOGIN,
    "description": "Account accessed",
    "status": ACTIVITY_STATUS_SUCCESS,
    "location": "System",
}

UNKNOWN_LOCATION = "Unknown location"
UNKNOWN_IP = "Unknown IP"

# ============================================================
# REFERRALS
# ============================================================

REFERRAL_CODE_LENGTH = 8
REFERRAL_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
REFERRAL_CODE_MAX_ATTEMPTS = 5

REFERRAL_BASE_REWARD = 50
REFERRAL_BASE_REWARD_EXPIRY_DAYS = 90
SIGNUP_BONUS = 25
SIGNUP_BONUS_EXPIRY_DAYS = 30
FIRST_ORDER_BONUS = 25
FIRST_ORDER_REFERRER_EXPIRY_DAYS = 90
FIRST_ORDER_REFERRED_EXPIRY_DAYS = 30

REFERRAL_SETTINGS_KEYS = (
    "share_via_email",
    "share_via_sms",
    "share_via_social",
    "notify_on_referral_join",
    "notify_on_reward_earned",
)

# ============================================================
# USERS
# ============================================================

SECURITY_SETTINGS_KEYS = (
    "two_factor_auth",
    "login_notifications",
    "session_timeout",
    "device_tracking",
    "password_expiry",
)

ADDRESS_FIELDS = (
    "label",
    "house_number",
    "street",
    "area",
    "landmark",
    "city",
    "state",
    "zipcode",
    "country",
    "coordinates",
)

RECENT_REGISTRATION_DAYS = 30

# bcrypt only hashes the first 72 bytes and bcrypt>=5 rejects longer input
MAX_PASSWORD_BYTES = 72

LOYALTY_ADD = "add"
LOYALTY_SUBTRACT = "subtract"
LOYALTY_SET = "set"
LOYALTY_OPERATIONS = (LOYALTY_ADD, LOYALTY_SUBTRACT, LOYALTY_SET)

# ============================================================
# INTAKE (CONTACTS / APPLICATIONS)
# ============================================================

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100
