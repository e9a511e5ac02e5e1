"""
Database queries

Module organization:
- progression.py: Per-user progression documents (JSONB + version column)
"""

from src.db.queries.progression import (
    ensure_progression_schema,
    get_progression_document,
    insert_progression_document,
    update_progression_document,
    list_progression_documents,
)

__all__ = [
    "ensure_progression_schema",
    "get_progression_document",
    "insert_progression_document",
    "update_progression_document",
    "list_progression_documents",
]
