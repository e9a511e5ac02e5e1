"""
Service Layer Package

Business logic services between callers (dashboard handlers, scripts) and
the progression store.

Core Services:
- ProgressionService: XP awards, login streaks, summaries, progress suggestions
"""

from src.services.container import ServiceContainer, get_container, init_container
from src.services.progression_service import ProgressionService

__all__ = [
    "ServiceContainer",
    "get_container",
    "init_container",
    "ProgressionService",
]
