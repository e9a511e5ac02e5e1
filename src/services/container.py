"""
Service Container - Dependency Injection Container

Simple DI container for the progression services and their store.
Uses lazy loading to only instantiate services when first accessed.
"""

from dataclasses import dataclass, field
from typing import Optional
import logging

from src import config

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """
    Simple dependency injection container for services.

    Services are lazy-loaded on first access via properties.
    The progression store is injected.
    """

    # Infrastructure dependencies (injected)
    store: object  # ProgressionStore instance
    catalog: Optional[tuple] = None  # Overrides ACHIEVEMENT_CATALOG_PATH and the built-in catalog

    # Services (lazy-loaded via properties)
    _progression_service: Optional[object] = field(default=None, init=False, repr=False)

    @property
    def progression_service(self):
        """Get ProgressionService instance (lazy-loaded)"""
        if self._progression_service is None:
            from src.gamification.achievement_system import load_catalog
            from src.services.progression_service import ProgressionService

            catalog = self.catalog
            if catalog is None and config.ACHIEVEMENT_CATALOG_PATH is not None:
                catalog = load_catalog(config.ACHIEVEMENT_CATALOG_PATH)

            self._progression_service = ProgressionService(self.store, catalog=catalog)
            logger.debug("ProgressionService instantiated")
        return self._progression_service


# Global container instance (initialized at startup)
_container: Optional[ServiceContainer] = None


def get_container() -> ServiceContainer:
    """
    Get the global service container.

    Returns:
        ServiceContainer: The global container instance

    Raises:
        RuntimeError: If container not initialized (call init_container first)
    """
    if _container is None:
        raise RuntimeError(
            "Service container not initialized. "
            "Call init_container() at startup before using services."
        )
    return _container


def init_container(store: object, catalog: Optional[tuple] = None) -> ServiceContainer:
    """
    Initialize the global service container.

    Args:
        store: ProgressionStore instance
        catalog: Optional achievement catalog (e.g. from load_catalog)

    Returns:
        ServiceContainer: The initialized container
    """
    global _container

    _container = ServiceContainer(store=store, catalog=catalog)

    logger.info("Service container initialized")
    return _container
