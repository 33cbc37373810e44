"""
Plugin registry for ingestion plugins.

Provides registration and discovery of the plugins a host can load. The
built-in plugins register themselves when `fab_log_pipeline.ingestion.plugins`
is imported; lookups import it on first use.
"""

import importlib
import logging
from typing import Any, Type

from .base import IngestionPlugin
from .exceptions import PluginNotFoundError

logger = logging.getLogger(__name__)

BUILTIN_PLUGINS_MODULE = "fab_log_pipeline.ingestion.plugins"


class PluginRegistry:
    """
    Registry for ingestion plugins.

    Usage:
        # Register using decorator
        @PluginRegistry.register('prealign')
        class PrealignPlugin(IngestionPlugin):
            ...

        # Get a configured plugin instance
        plugin = PluginRegistry.get_plugin('prealign', backend=backend)

        # List all plugins
        names = PluginRegistry.list_plugins()
    """

    _plugins: dict[str, Type[IngestionPlugin]] = {}

    @classmethod
    def register(cls, plugin_name: str):
        """
        Decorator to register a plugin class.

        Args:
            plugin_name: Identifier for registry lookup

        Returns:
            Decorator function
        """

        def decorator(plugin_class: Type[IngestionPlugin]) -> Type[IngestionPlugin]:
            cls.register_plugin(plugin_name, plugin_class)
            return plugin_class

        return decorator

    @classmethod
    def register_plugin(
        cls, plugin_name: str, plugin_class: Type[IngestionPlugin]
    ) -> None:
        """
        Register a plugin class.

        Raises:
            TypeError: If plugin_class doesn't inherit from IngestionPlugin
        """
        if not issubclass(plugin_class, IngestionPlugin):
            raise TypeError(
                f"Plugin class must inherit from IngestionPlugin, "
                f"got {plugin_class.__name__}"
            )

        plugin_name = plugin_name.lower()

        if plugin_name in cls._plugins and cls._plugins[plugin_name] is not plugin_class:
            logger.warning(f"Overwriting existing plugin '{plugin_name}'")

        cls._plugins[plugin_name] = plugin_class
        logger.debug(f"Registered ingestion plugin: {plugin_name}")

    @classmethod
    def _ensure_builtins(cls) -> None:
        importlib.import_module(BUILTIN_PLUGINS_MODULE)

    @classmethod
    def get_plugin_class(cls, plugin_name: str) -> Type[IngestionPlugin]:
        """
        Get a plugin class by name (without instantiation).

        Raises:
            PluginNotFoundError: If the plugin is not registered
        """
        plugin_name = plugin_name.lower()

        if plugin_name not in cls._plugins:
            cls._ensure_builtins()

        if plugin_name not in cls._plugins:
            raise PluginNotFoundError(
                plugin_name=plugin_name,
                available_plugins=list(cls._plugins.keys()),
            )

        return cls._plugins[plugin_name]

    @classmethod
    def get_plugin(cls, plugin_name: str, **dependencies: Any) -> IngestionPlugin:
        """
        Get a plugin instance by name.

        Args:
            plugin_name: Plugin identifier
            **dependencies: Constructor arguments (backend, clock, settings ...)

        Raises:
            PluginNotFoundError: If the plugin is not registered
        """
        return cls.get_plugin_class(plugin_name)(**dependencies)

    @classmethod
    def list_plugins(cls) -> list[str]:
        """
        List all registered plugin names.

        Returns:
            Sorted list of plugin identifiers
        """
        cls._ensure_builtins()
        return sorted(cls._plugins.keys())

    @classmethod
    def is_plugin_registered(cls, plugin_name: str) -> bool:
        """Check if a plugin is registered."""
        return plugin_name.lower() in cls._plugins

    @classmethod
    def clear(cls) -> None:
        """
        Clear all registered plugins.

        Primarily used for testing to reset registry state.
        """
        cls._plugins.clear()
        logger.debug("Cleared ingestion plugin registry")


# =============================================================================
# Convenience Functions
# =============================================================================


def get_plugin(plugin_name: str, **dependencies: Any) -> IngestionPlugin:
    """
    Get a plugin instance by name.

    Convenience function wrapping PluginRegistry.get_plugin().
    """
    return PluginRegistry.get_plugin(plugin_name, **dependencies)


def list_plugins() -> list[str]:
    """
    List all registered plugin names.

    Convenience function wrapping PluginRegistry.list_plugins().
    """
    return PluginRegistry.list_plugins()
