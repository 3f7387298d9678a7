"""
Plugins Package

This package contains the command plugins and their registry:
- registry: plugin registration and the client handed to handlers
- responses: formatting of bot replies
- lgtm: the /lgtm command
"""

from lgtm_bot.config import Settings
from lgtm_bot.plugins import lgtm
from lgtm_bot.plugins.registry import PluginClient, PluginRegistry


def register_plugins(registry: PluginRegistry, settings: Settings) -> PluginRegistry:
    """Register every plugin this bot ships with."""
    lgtm.register(registry, lgtm.LGTMConfig.from_settings(settings))
    return registry


__all__ = ["PluginClient", "PluginRegistry", "register_plugins"]
