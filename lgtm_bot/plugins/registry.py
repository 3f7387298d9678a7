"""
Plugin Registry Module

Plugins are registered explicitly by the application factory rather than
as an import side effect. Each registration names the plugin, the handler
for one event kind and a help provider.
"""

from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional, Protocol

import structlog

from lgtm_bot.models import GenericCommentEvent, GitHubLabel, PluginHelp, ReviewEvent


class PluginGitHubClient(Protocol):
    """GitHub operations available to plugins."""

    async def is_member(self, org: str, user: str) -> bool: ...

    async def add_label(self, org: str, repo: str, number: int, label: str) -> None: ...

    async def assign_issue(self, org: str, repo: str, number: int, logins: List[str]) -> None: ...

    async def create_comment(self, org: str, repo: str, number: int, body: str) -> None: ...

    async def remove_label(self, org: str, repo: str, number: int, label: str) -> None: ...

    async def get_issue_labels(self, org: str, repo: str, number: int) -> List[GitHubLabel]: ...


@dataclass
class PluginClient:
    """What a plugin handler gets to work with for one event."""
    github_client: PluginGitHubClient
    logger: structlog.stdlib.BoundLogger


HelpProvider = Callable[[List[str]], PluginHelp]
GenericCommentHandler = Callable[[PluginClient, GenericCommentEvent], Awaitable[None]]
ReviewEventHandler = Callable[[PluginClient, ReviewEvent], Awaitable[None]]


class PluginRegistrationError(ValueError):
    """A plugin was registered twice for the same event kind."""


@dataclass
class PluginRegistry:
    """Handlers and help providers keyed by plugin name."""
    generic_comment_handlers: Dict[str, GenericCommentHandler] = field(default_factory=dict)
    review_event_handlers: Dict[str, ReviewEventHandler] = field(default_factory=dict)
    help_providers: Dict[str, HelpProvider] = field(default_factory=dict)

    def register_generic_comment_handler(
        self,
        name: str,
        handler: GenericCommentHandler,
        help_provider: HelpProvider
    ) -> None:
        if name in self.generic_comment_handlers:
            raise PluginRegistrationError(f"generic comment handler already registered for {name}")
        self.generic_comment_handlers[name] = handler
        self.help_providers[name] = help_provider

    def register_review_event_handler(
        self,
        name: str,
        handler: ReviewEventHandler,
        help_provider: HelpProvider
    ) -> None:
        if name in self.review_event_handlers:
            raise PluginRegistrationError(f"review event handler already registered for {name}")
        self.review_event_handlers[name] = handler
        self.help_providers[name] = help_provider

    def plugin_help(self, enabled_repos: Optional[List[str]] = None) -> Dict[str, PluginHelp]:
        """Collect the help of every registered plugin."""
        repos = enabled_repos or []
        return {name: provider(repos) for name, provider in sorted(self.help_providers.items())}
