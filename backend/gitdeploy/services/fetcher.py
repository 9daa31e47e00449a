"""
Repository Fetcher

Produces a clean working directory holding exactly one commit of a repository.
Clone and checkout go through the RepoFetcher interface so tests can swap in a
fake without network access.
"""

import logging
import os
import shutil
import tempfile
from abc import ABC, abstractmethod
from typing import Optional

from gitdeploy.core.config import settings
from gitdeploy.core.exceptions import ConfigurationError, FetchError
from gitdeploy.core.security import redact_url
from gitdeploy.models.push_event import PushEvent
from gitdeploy.services.cli_base import CLITool

logger = logging.getLogger(__name__)


class RepoFetcher(ABC):
    @abstractmethod
    async def clone(self, url: str, parent_dir: str) -> None:
        """Clone url into parent_dir, creating parent_dir/<repo name>."""

    @abstractmethod
    async def checkout(self, sha: str, dest_path: str) -> None:
        """Check out commit sha inside dest_path."""


class GitCliFetcher(CLITool, RepoFetcher):
    cli_command = "git"
    error_class = FetchError

    async def clone(self, url: str, parent_dir: str) -> None:
        stdout, stderr, returncode = await self._execute_command(["clone", url], cwd=parent_dir)
        if returncode != 0:
            # git may echo the URL back, never let the credential through
            message = stderr.decode(errors="replace").replace(url, redact_url(url)).strip()
            raise FetchError(f"git clone of {redact_url(url)} failed: {message}")

    async def checkout(self, sha: str, dest_path: str) -> None:
        stdout, stderr, returncode = await self._execute_command(["checkout", sha], cwd=dest_path)
        if returncode != 0:
            raise FetchError(f"git checkout {sha} failed: {stderr.decode(errors='replace').strip()}")


def work_dir() -> str:
    return settings.WORK_DIR or tempfile.gettempdir()


def destination_path(event: PushEvent, base_dir: Optional[str] = None) -> str:
    return os.path.join(base_dir or work_dir(), event.owner, event.repo_name)


def validate_identity(event: PushEvent) -> None:
    if not event.owner:
        raise ConfigurationError("login must be specified")
    if not event.repo_name:
        raise ConfigurationError("repo name must be specified")


async def clone_repository(
    fetcher: RepoFetcher,
    event: PushEvent,
    clone_url: str,
    base_dir: Optional[str] = None,
) -> str:
    """
    Clones the pushed commit into ``{base_dir}/{owner}/{repo}`` and returns that path.

    A directory left over from an earlier run is removed first.
    """
    validate_identity(event)

    base = base_dir or work_dir()
    dest_path = destination_path(event, base)

    if os.path.exists(dest_path):
        logger.info(f"Removing stale working directory {dest_path}")
        try:
            shutil.rmtree(dest_path)
        except OSError as e:
            raise FetchError(f"cannot remove stale working directory {dest_path}: {e.strerror}") from e

    user_dir = os.path.join(base, event.owner)
    try:
        os.makedirs(user_dir, exist_ok=True)
    except OSError as e:
        raise FetchError(f"cannot create user-dir: {user_dir}") from e

    logger.info(f"Cloning {redact_url(clone_url)} into {user_dir}")
    await fetcher.clone(clone_url, user_dir)
    await fetcher.checkout(event.after_commit_id, dest_path)

    return dest_path
