from flask import current_app

from ..extensions import REPOSITORY_EXTENSION_KEY
from .base import InventoryRepository
from .memory import InMemoryRepository
from .sql import SqlAlchemyRepository


def get_repository() -> InventoryRepository:
    """Repository registered on the running app by create_app()."""
    return current_app.extensions[REPOSITORY_EXTENSION_KEY]


__all__ = [
    'InventoryRepository',
    'InMemoryRepository',
    'SqlAlchemyRepository',
    'get_repository',
]
