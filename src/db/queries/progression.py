"""Progression document queries"""
import json
import logging
from typing import Optional
from src.db.connection import db

logger = logging.getLogger(__name__)


CREATE_PROGRESSION_TABLE = """
CREATE TABLE IF NOT EXISTS user_progression (
    user_id VARCHAR(255) PRIMARY KEY REFERENCES users(uid) ON DELETE CASCADE,
    data JSONB NOT NULL,
    version INTEGER NOT NULL DEFAULT 1,
    created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
)
"""


async def ensure_progression_schema() -> None:
    """Create the user_progression table if missing"""
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(CREATE_PROGRESSION_TABLE)
            await conn.commit()
    logger.info("Ensured user_progression table exists")


async def get_progression_document(user_id: str) -> Optional[dict]:
    """
    Get a user's progression document

    Returns:
        None if the user does not exist, otherwise
        {
            'user_id': str,
            'data': dict | None,  # None when no progression yet
            'version': int | None
        }
    """
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                SELECT u.uid AS user_id, p.data, p.version
                FROM users u
                LEFT JOIN user_progression p ON p.user_id = u.uid
                WHERE u.uid = %s
                """,
                (user_id,)
            )
            row = await cur.fetchone()
            return dict(row) if row else None


async def insert_progression_document(user_id: str, data: dict) -> bool:
    """
    Create the first progression document for a user

    Returns:
        False if another writer created it first
    """
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                INSERT INTO user_progression (user_id, data, version)
                VALUES (%s, %s, 1)
                ON CONFLICT (user_id) DO NOTHING
                """,
                (user_id, json.dumps(data))
            )
            inserted = cur.rowcount == 1
            await conn.commit()
            return inserted


async def update_progression_document(user_id: str, expected_version: int, data: dict) -> bool:
    """
    Replace a progression document if its version is unchanged

    Returns:
        False if the stored version no longer matches expected_version
    """
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                UPDATE user_progression
                SET data = %s,
                    version = version + 1,
                    updated_at = CURRENT_TIMESTAMP
                WHERE user_id = %s AND version = %s
                """,
                (json.dumps(data), user_id, expected_version)
            )
            updated = cur.rowcount == 1
            await conn.commit()
            return updated


async def list_progression_documents() -> list[dict]:
    """
    Get every user with their progression document (if any)

    Returns:
        List of {'user_id': str, 'data': dict | None, 'version': int | None}
    """
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                SELECT u.uid AS user_id, p.data, p.version
                FROM users u
                LEFT JOIN user_progression p ON p.user_id = u.uid
                ORDER BY u.uid
                """
            )
            rows = await cur.fetchall()
            return [dict(row) for row in rows]


async def progression_table_exists() -> bool:
    """Check whether the user_progression table has been created"""
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute("SELECT to_regclass('user_progression') IS NOT NULL AS present")
            row = await cur.fetchone()
            return bool(row and row['present'])


async def count_users() -> int:
    """Number of user contexts that can hold a progression document"""
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute("SELECT COUNT(*) AS total FROM users")
            row = await cur.fetchone()
            return row['total'] if row else 0
