"""
Source control providers.

Each SCM is one SourceControlProvider variant; adding an SCM means adding a
variant and registering it in get_provider.
"""

from typing import Optional

import httpx

from gitdeploy.core.config import settings
from gitdeploy.core.exceptions import ConfigurationError
from gitdeploy.models.push_event import SCM, PushEvent
from gitdeploy.services.gateway import GatewayClient
from gitdeploy.services.scm.base import SourceControlProvider
from gitdeploy.services.scm.github import GitHubProvider, InstallationToken
from gitdeploy.services.scm.gitlab import GitLabProvider


def get_provider(
    event: PushEvent,
    gateway: GatewayClient,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> SourceControlProvider:
    """Builds a fresh provider, with its own token holder, for one pipeline run."""
    if event.scm == SCM.GITHUB:
        token = InstallationToken(settings.GITHUB_APP_ID, event.installation.id, transport=transport)
        return GitHubProvider(token, gateway=gateway, transport=transport)
    if event.scm == SCM.GITLAB:
        return GitLabProvider(gateway)
    raise ConfigurationError(f"non-supported SCM: {event.scm}")


__all__ = [
    "GitHubProvider",
    "GitLabProvider",
    "InstallationToken",
    "SourceControlProvider",
    "get_provider",
]
