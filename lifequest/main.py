"""Main entry point: maintenance pass for one character

Usage:
    python -m lifequest.main <character_id> [name]

Creates the character if needed, credits resource regeneration, purges
expired buffs, fails timed-out quests and logs the character sheet.
"""
import asyncio
import logging
import sys
from typing import Optional

from lifequest import config
from lifequest.config import validate_config, LOG_LEVEL
from lifequest.db import StateStore
from lifequest.db.connection import db
from lifequest.db.memory_store import InMemoryStateStore
from lifequest.db.queries import PostgresStateStore, ensure_schema
from lifequest.gamification.catalog import Catalog, default_catalog, load_catalog
from lifequest.gamification.orchestrator import Orchestrator
from lifequest.services import GamificationService

# Configure logging
logging.basicConfig(
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO)
)

logger = logging.getLogger(__name__)


def build_catalog() -> Catalog:
    if config.CATALOG_PATH is not None:
        return load_catalog(config.CATALOG_PATH)
    return default_catalog()


async def build_store() -> StateStore:
    """Store for the configured backend; opens the pool for postgres"""
    if config.STATE_BACKEND == "postgres":
        logger.info("Initializing database connection pool...")
        await db.init_pool()
        await ensure_schema(db)
        return PostgresStateStore(db)
    return InMemoryStateStore()


async def run(character_id: str, name: Optional[str] = None) -> None:
    validate_config()
    service = GamificationService(await build_store(), Orchestrator(catalog=build_catalog()))

    try:
        if not await service.store.exists(character_id):
            logger.info(f"Creating character {character_id}")
            await service.create_character(character_id, name or character_id)

        changes = await service.regenerate_resources(character_id)
        for change in changes:
            logger.info(f"Regenerated {change.kind.value}: {change.before} -> {change.after}")

        purged = await service.housekeeping(character_id)
        logger.info(f"Purged {purged} expired buff(s)")

        sheet = await service.get_character_sheet(character_id)
        logger.info(
            f"{sheet.name} - level {sheet.level} ({sheet.progress_percent}% to next), "
            f"{sheet.total_xp} XP, {sheet.gold} gold, overdue: {', '.join(sheet.overdue_items) or 'none'}"
        )
    finally:
        if db.is_open:
            logger.info("Closing database connection...")
            await db.close_pool()


def main() -> None:
    if len(sys.argv) < 2:
        print(__doc__)
        sys.exit(2)
    asyncio.run(run(sys.argv[1], sys.argv[2] if len(sys.argv) > 2 else None))


if __name__ == "__main__":
    main()
