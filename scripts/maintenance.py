"""
Security data maintenance

Intended for a scheduled job:
    python scripts/maintenance.py cleanup [retention_days]
    python scripts/maintenance.py enforce
    python scripts/maintenance.py all
"""

import asyncio
import sys
from pathlib import Path

from dotenv import load_dotenv

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

load_dotenv()

from app.core.config import settings  # noqa: E402
from app.core.logging import setup_logging, get_logger  # noqa: E402
from app.db.mongo import close_mongo_connection, connect_to_mongo  # noqa: E402
from app.services.activity_service import cleanup_old_activities, enforce_security_limits  # noqa: E402

setup_logging()
logger = get_logger("scripts.maintenance")

USAGE = "usage: maintenance.py {cleanup [retention_days] | enforce | all}"


async def main(command: str, retention_days: int):
    await connect_to_mongo()
    try:
        if command in ("cleanup", "all"):
            result = await cleanup_old_activities(retention_days)
            logger.info(f"🧹 Removed {result['deleted_count']} activities older than {retention_days} days")
        if command in ("enforce", "all"):
            result = await enforce_security_limits()
            logger.info(
                f"📏 Caps enforced on {result['users_updated']} users "
                f"({result['sessions_trimmed']} sessions, {result['activities_trimmed']} activities trimmed)"
            )
    finally:
        await close_mongo_connection()


if __name__ == "__main__":
    args = sys.argv[1:]
    if not args or args[0] not in ("cleanup", "enforce", "all"):
        print(USAGE)
        sys.exit(2)

    days = int(args[1]) if len(args) > 1 else settings.ACTIVITY_RETENTION_DAYS
    asyncio.run(main(args[0], days))
