"""
Storage abstraction layer for the equipment log pipeline.

Provides a unified interface over SQLite (local) and PostgreSQL
(production).

Usage:
    from fab_log_pipeline.storage import get_backend

    # Get backend from configuration
    backend = get_backend()

    # Or explicitly specify backend
    backend = get_backend('sqlite', db_path='data/fab-logs.db')

    # Group statements atomically
    with backend.transaction() as tx:
        tx.execute("DELETE FROM plg_wf_flat WHERE eqpid = :eqpid", {"eqpid": "EQ01"})
"""

from .base import (
    QueryError,
    SchemaError,
    StorageBackend,
    StorageConnectionError,
    StorageError,
    Transaction,
)
from .factory import (
    get_backend,
    is_backend_available,
    list_available_backends,
    register_backend,
)

__all__ = [
    # Base classes and exceptions
    "StorageBackend",
    "Transaction",
    "StorageError",
    "StorageConnectionError",
    "QueryError",
    "SchemaError",
    # Factory functions
    "get_backend",
    "register_backend",
    "list_available_backends",
    "is_backend_available",
]
