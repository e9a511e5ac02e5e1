#!/usr/bin/env python3
"""
Progression Data Migration Script

Makes sure every user has a valid progression document:
- users without one get the default snapshot (score 0, level 1)
- documents that fail validation (older schema, hand edits) are repaired:
  score reconciled to the XP history, level to the level curve, malformed
  streak/counters reset, invalid or duplicate badges dropped

Key Features:
- Idempotent: valid documents are left untouched
- Uses the same versioned conditional write as awards, so it is safe to run
  while the dashboard is live (a document changed mid-run is skipped)
- --dry-run reports what would change without writing

Usage:
    python scripts/migrate_progression.py [--dry-run]

Requirements:
    - Database connection configured (DATABASE_URL env var)
    - users table must exist (user_progression is created if missing)
"""
import argparse
import asyncio
import logging
import sys
from datetime import datetime
from pathlib import Path

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.config import LOG_LEVEL
from src.db.connection import db
from src.db.queries.progression import (
    count_users,
    ensure_progression_schema,
    insert_progression_document,
    list_progression_documents,
    progression_table_exists,
    update_progression_document,
)
from src.gamification.snapshot_repair import load_snapshot

# Configure logging
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


async def migrate_progression(dry_run: bool = False) -> dict:
    """
    Initialize missing and repair invalid progression documents.

    Returns:
        {'initialized': int, 'repaired': int, 'unchanged': int, 'skipped': int, 'errors': int}
    """
    stats = {'initialized': 0, 'repaired': 0, 'unchanged': 0, 'skipped': 0, 'errors': 0}

    rows = await list_progression_documents()
    logger.info(f"Found {len(rows)} users to check")

    for i, row in enumerate(rows, start=1):
        if i % 100 == 0:
            logger.info(f"Progress: {i}/{len(rows)} users checked")

        user_id = row['user_id']
        try:
            if row['data'] is None:
                snapshot, _ = load_snapshot(None, user_id)
                if not dry_run and not await insert_progression_document(
                    user_id, snapshot.model_dump(mode="json")
                ):
                    logger.info(f"Progression for user {user_id} created concurrently, skipping")
                    stats['skipped'] += 1
                    continue
                stats['initialized'] += 1
                continue

            snapshot, repaired = load_snapshot(row['data'], user_id)
            if not repaired:
                stats['unchanged'] += 1
                continue

            if not dry_run and not await update_progression_document(
                user_id, row['version'], snapshot.model_dump(mode="json")
            ):
                logger.info(f"Progression for user {user_id} changed during migration, skipping")
                stats['skipped'] += 1
                continue
            stats['repaired'] += 1

        except Exception as e:
            logger.error(f"Error migrating progression for user {user_id}: {e}")
            stats['errors'] += 1

    return stats


async def main(dry_run: bool = False) -> int:
    """Run the migration"""
    start_time = datetime.now()

    logger.info("=" * 60)
    logger.info("PROGRESSION DATA MIGRATION" + (" (DRY RUN)" if dry_run else ""))
    logger.info(f"Started at: {start_time.isoformat()}")
    logger.info("=" * 60)

    try:
        await db.init_pool()
        logger.info("Database connection established")
    except Exception as e:
        logger.error(f"Failed to connect to database: {e}")
        return 1

    try:
        if not dry_run:
            await ensure_progression_schema()
            stats = await migrate_progression()
        elif not await progression_table_exists():
            # Fresh database: every user would get a default document
            user_count = await count_users()
            logger.info(f"user_progression table missing, {user_count} users would be initialized")
            stats = {'initialized': user_count, 'repaired': 0, 'unchanged': 0, 'skipped': 0, 'errors': 0}
        else:
            stats = await migrate_progression(dry_run=True)

        duration = (datetime.now() - start_time).total_seconds()
        logger.info("=" * 60)
        logger.info("MIGRATION COMPLETE")
        logger.info(f"Initialized: {stats['initialized']}")
        logger.info(f"Repaired: {stats['repaired']}")
        logger.info(f"Unchanged: {stats['unchanged']}")
        logger.info(f"Skipped (concurrent change): {stats['skipped']}")
        logger.info(f"Errors: {stats['errors']}")
        logger.info(f"Duration: {duration:.2f}s")
        logger.info("=" * 60)

        return 1 if stats['errors'] else 0

    except Exception as e:
        logger.error(f"Migration failed: {e}", exc_info=True)
        return 1

    finally:
        await db.close_pool()
        logger.info("Database connection closed")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Initialize and repair progression documents")
    parser.add_argument("--dry-run", action="store_true", help="Report changes without writing")
    args = parser.parse_args()

    exit_code = asyncio.run(main(dry_run=args.dry_run))
    sys.exit(exit_code)
