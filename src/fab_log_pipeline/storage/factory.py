"""
Backend selection.

`get_backend()` builds the store named by `Settings.storage_backend`, with
connection arguments taken from the same settings unless given explicitly.
Implementations are imported on first use so a SQLite-only deployment
never imports the PostgreSQL driver.
"""

import importlib
import logging
from pathlib import Path
from typing import Any, Optional

from .base import StorageBackend, StorageError

logger = logging.getLogger(__name__)

# Backend name → "module:Class", relative to this package
_BUILTIN_BACKENDS = {
    "sqlite": ".sqlite_backend:SQLiteBackend",
    "postgres": ".postgres_backend:PostgresBackend",
}

_ALIASES = {"postgresql": "postgres", "pg": "postgres", "sqlite3": "sqlite"}

_BACKEND_REGISTRY: dict[str, type[StorageBackend]] = {}


def _normalize(backend_type: str) -> str:
    name = backend_type.strip().lower()
    return _ALIASES.get(name, name)


def register_backend(backend_type: str, backend_class: type[StorageBackend]) -> None:
    """Make `backend_class` available under `backend_type`."""
    _BACKEND_REGISTRY[_normalize(backend_type)] = backend_class
    logger.debug(f"Registered storage backend: {backend_type}")


def _load_builtin(backend_type: str) -> None:
    target = _BUILTIN_BACKENDS.get(backend_type)
    if target is None or backend_type in _BACKEND_REGISTRY:
        return

    module_name, class_name = target.split(":")
    try:
        module = importlib.import_module(module_name, package=__package__)
    except ImportError as e:
        # psycopg missing on a SQLite-only install
        logger.warning(f"{backend_type} backend not available: {e}")
        return
    register_backend(backend_type, getattr(module, class_name))


def backend_kwargs_from_settings(backend_type: str, settings: Any = None) -> dict[str, Any]:
    """Constructor arguments for `backend_type` from `Settings`."""
    if settings is None:
        from ..config.settings import get_settings

        settings = get_settings()

    backend_type = _normalize(backend_type)
    if backend_type == "sqlite":
        return {
            "db_path": Path(settings.sqlite_db_path),
            "timeout": settings.store_timeout_seconds,
        }
    if backend_type == "postgres":
        return {
            "dsn": settings.postgres_dsn,
            "connect_timeout": settings.store_timeout_seconds,
        }
    return {}


def get_backend(backend_type: Optional[str] = None, **kwargs) -> StorageBackend:
    """
    Create a storage backend.

    Args:
        backend_type: ``sqlite`` or ``postgres``; None reads `Settings.storage_backend`
        **kwargs: Constructor arguments; when empty they come from settings
                  (SQLite: db_path, timeout; PostgreSQL: dsn, connect_timeout)

    Returns:
        An unconnected backend; call `initialize()` before first use.

    Raises:
        StorageError: For an unknown type or a failing constructor

    Examples:
        backend = get_backend()
        backend = get_backend("sqlite", db_path="data/fab-logs.db")
    """
    if backend_type is None:
        from ..config.settings import get_settings

        backend_type = get_settings().storage_backend

    name = _normalize(backend_type)
    _load_builtin(name)

    backend_class = _BACKEND_REGISTRY.get(name)
    if backend_class is None:
        available = ", ".join(sorted(_BACKEND_REGISTRY)) or "none"
        raise StorageError(
            f"Unknown storage backend: '{backend_type}'. Available backends: {available}"
        )

    arguments = kwargs or backend_kwargs_from_settings(name)
    try:
        backend = backend_class(**arguments)
    except Exception as e:
        raise StorageError(f"Failed to create {name} backend: {e}") from e

    logger.info(f"Created {name} storage backend")
    return backend


def list_available_backends() -> list[str]:
    """Names of the backends that can be created in this environment."""
    for name in _BUILTIN_BACKENDS:
        _load_builtin(name)
    return sorted(_BACKEND_REGISTRY)


def is_backend_available(backend_type: str) -> bool:
    name = _normalize(backend_type)
    _load_builtin(name)
    return name in _BACKEND_REGISTRY
