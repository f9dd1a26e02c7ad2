from __future__ import annotations

from homehub.core.request_context import is_demo_mode
from homehub.services.log_service import log_operation
from homehub.services.plugins.base import ServicePlugin
from homehub.services.plugins.hive import HiveClient, HivePlugin
from homehub.services.plugins.hive_demo import HiveDemoPlugin
from homehub.services.plugins.hue import HuePlugin
from homehub.services.plugins.hue_demo import HueDemoPlugin
from homehub.services.plugins.spotify import SpotifyClient, SpotifyPlugin
from homehub.services.plugins.spotify_demo import SpotifyDemoPlugin
from homehub.services.session_manager import SessionManager


class ServiceRegistry:
    """One live plugin per service id, plus an optional demo twin.

    ``demo_mode=None`` on lookups means "ask the current request context".
    """

    def __init__(self) -> None:
        self._plugins: dict[str, ServicePlugin] = {}
        self._demo_plugins: dict[str, ServicePlugin] = {}

    @staticmethod
    def _validate(plugin: ServicePlugin, registry: dict[str, ServicePlugin], label: str) -> str:
        if not isinstance(plugin, ServicePlugin):
            raise TypeError(f"{label} must be a ServicePlugin, got {type(plugin).__name__}")
        plugin_id = plugin.id
        if not plugin_id or plugin_id == ServicePlugin.id:
            raise ValueError(f"{label} must define a service id")
        if plugin_id in registry:
            raise ValueError(f"{label} '{plugin_id}' is already registered")
        return plugin_id

    def register(self, plugin: ServicePlugin) -> None:
        plugin_id = self._validate(plugin, self._plugins, "plugin")
        self._plugins[plugin_id] = plugin
        log_operation(
            event_type="registry",
            source="system",
            action="registry.register",
            success=True,
            detail={"id": plugin_id, "display_name": plugin.display_name},
        )

    def register_demo(self, plugin: ServicePlugin) -> None:
        plugin_id = self._validate(plugin, self._demo_plugins, "demo plugin")
        self._demo_plugins[plugin_id] = plugin
        log_operation(
            event_type="registry",
            source="system",
            action="registry.register_demo",
            success=True,
            detail={"id": plugin_id},
        )

    def unregister(self, service_id: str) -> bool:
        if self._plugins.pop(service_id, None) is None:
            return False
        self._demo_plugins.pop(service_id, None)
        log_operation(
            event_type="registry",
            source="system",
            action="registry.unregister",
            success=True,
            detail={"id": service_id},
        )
        return True

    @staticmethod
    def _use_demo(demo_mode: bool | None) -> bool:
        return is_demo_mode() if demo_mode is None else demo_mode

    def get(self, service_id: str, demo_mode: bool | None = None) -> ServicePlugin | None:
        if self._use_demo(demo_mode):
            return self._demo_plugins.get(service_id)
        return self._plugins.get(service_id)

    def has(self, service_id: str) -> bool:
        return service_id in self._plugins

    def get_all(self, demo_mode: bool | None = None) -> list[ServicePlugin]:
        if self._use_demo(demo_mode):
            return list(self._demo_plugins.values())
        return list(self._plugins.values())

    def get_ids(self) -> list[str]:
        return list(self._plugins)

    def get_all_metadata(self, demo_mode: bool | None = None) -> list[dict]:
        return [plugin.get_metadata() for plugin in self.get_all(demo_mode)]


def build_default_registry(
    session_manager: SessionManager,
    *,
    hive_client: HiveClient | None = None,
    spotify_client: SpotifyClient | None = None,
) -> ServiceRegistry:
    registry = ServiceRegistry()
    registry.register(HuePlugin(session_manager))
    registry.register_demo(HueDemoPlugin())
    registry.register(HivePlugin(hive_client))
    registry.register_demo(HiveDemoPlugin())
    registry.register(SpotifyPlugin(spotify_client))
    registry.register_demo(SpotifyDemoPlugin())
    return registry
