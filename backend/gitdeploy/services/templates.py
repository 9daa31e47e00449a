"""
Function templates.

Templates are pulled into the cloned repository with ``faas-cli template pull``
before the build step; every function's language must match one of the
template directories afterwards.
"""

import logging
import os
from typing import List, Optional, Tuple
from urllib.parse import urlparse

from gitdeploy.core.config import settings
from gitdeploy.core.constants import DEFAULT_TEMPLATE_REPOSITORY, TEMPLATE_DIR_NAME
from gitdeploy.core.exceptions import ConfigurationError, TemplateError
from gitdeploy.models.manifest import FunctionManifest
from gitdeploy.services.cli_base import CLITool

logger = logging.getLogger(__name__)


def _is_valid_uri(value: str) -> bool:
    try:
        parsed = urlparse(value)
    except ValueError:
        return False
    return bool(parsed.scheme) and bool(parsed.netloc)


def format_template_repos(custom_templates: Optional[str] = None) -> Tuple[List[str], List[str]]:
    """
    Returns the template repositories to pull and the invalid custom entries.

    The default repository is always first.
    """
    raw = settings.CUSTOM_TEMPLATES if custom_templates is None else custom_templates
    repos = [DEFAULT_TEMPLATE_REPOSITORY]
    errors: List[str] = []

    for repo in raw.strip().split(","):
        repo = repo.strip()
        if not repo:
            continue
        if _is_valid_uri(repo):
            repos.append(repo)
        else:
            errors.append(f"Non-valid template URL is configured in custom_templates: {repo}")

    return repos, errors


def validate_template_repos(custom_templates: Optional[str] = None) -> List[str]:
    repos, errors = format_template_repos(custom_templates)
    if errors:
        raise ConfigurationError("\n".join(errors))
    return repos


class TemplateFetcher(CLITool):
    cli_command = "faas-cli"
    error_class = TemplateError

    async def pull(self, repo: str, clone_path: str) -> None:
        stdout, stderr, returncode = await self._execute_command(["template", "pull", repo], cwd=clone_path)
        if returncode != 0:
            raise TemplateError(f"{repo}, {stderr.decode(errors='replace').strip()}")

    async def fetch_templates(self, clone_path: str, repos: List[str]) -> None:
        """Pulls every repository, then reports all failures together."""
        errors = []
        for repo in repos:
            logger.info(f"Pulling templates from {repo}")
            try:
                await self.pull(repo, clone_path)
            except TemplateError as e:
                errors.append(str(e))
        if errors:
            raise TemplateError("\n".join(errors))


def existing_templates(clone_path: str) -> List[str]:
    template_path = os.path.join(clone_path, TEMPLATE_DIR_NAME)
    try:
        entries = sorted(os.listdir(template_path))
    except OSError as e:
        raise TemplateError(f"error while reading templates directory: {e.strerror}") from e
    return [name for name in entries if os.path.isdir(os.path.join(template_path, name))]


def check_compatible_templates(manifest: FunctionManifest, templates: List[str]) -> None:
    """
    Raises TemplateError naming every function whose language has no template.

    Every function is checked against the whole template set, so the result
    does not depend on template order.
    """
    available = set(templates)
    unsupported = [
        f"Not supported language: `{spec.lang}` for function: `{name}`"
        for name, spec in manifest.functions.items()
        if spec.lang and spec.lang not in available
    ]
    if unsupported:
        raise TemplateError("\n".join(unsupported))
