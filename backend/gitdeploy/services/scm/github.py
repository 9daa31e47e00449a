import logging
from typing import Optional
from urllib.parse import quote, urlsplit, urlunsplit

import httpx

from gitdeploy.core.config import settings
from gitdeploy.core.constants import STATUS_PENDING
from gitdeploy.core.exceptions import AuthenticationError, ConfigurationError, PipelineError
from gitdeploy.core.http_utils import HTTPRequestError, InstrumentedAsyncClient
from gitdeploy.core.metrics import status_reports_total
from gitdeploy.core.secrets import private_key_path
from gitdeploy.core.security import create_github_app_jwt
from gitdeploy.models.push_event import SCM, PushEvent
from gitdeploy.models.status import PipelineStatus
from gitdeploy.services.checks import GitHubStatusClient
from gitdeploy.services.gateway import GatewayClient
from gitdeploy.services.scm.base import SourceControlProvider

logger = logging.getLogger(__name__)


def embed_credentials(clone_url: str, username: str, password: str) -> str:
    """Replaces the authority of clone_url with username:password@host[:port]."""
    try:
        parts = urlsplit(clone_url)
    except ValueError as e:
        raise ConfigurationError("couldn't parse clone URL") from e
    if not parts.hostname:
        raise ConfigurationError("clone URL has no host")

    host = parts.hostname
    if parts.port:
        host = f"{host}:{parts.port}"
    netloc = f"{quote(username, safe='')}:{quote(password, safe='')}@{host}"
    return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))


class InstallationToken:
    """
    Short-lived GitHub App installation token.

    Exchanged once on first use and memoized for the life of one pipeline
    run; the holder is discarded with the run.
    """

    def __init__(
        self,
        app_id: str,
        installation_id: int,
        private_key_file: Optional[str] = None,
        api_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.app_id = app_id
        self.installation_id = installation_id
        self.private_key_file = private_key_file or private_key_path()
        self.api_url = (api_url or settings.GITHUB_API_URL).rstrip("/")
        self._client_kwargs = {"transport": transport} if transport else {}
        self._token: Optional[str] = None

    def _read_private_key(self) -> str:
        try:
            with open(self.private_key_file, "r", encoding="utf-8") as key_file:
                return key_file.read()
        except OSError as e:
            raise AuthenticationError(f"cannot read GitHub App private key: {e.strerror}") from e

    async def get_token(self) -> str:
        if self._token:
            return self._token

        if not self.app_id:
            raise ConfigurationError("github_app_id is not set")

        app_jwt = create_github_app_jwt(self.app_id, self._read_private_key())
        endpoint = f"{self.api_url}/app/installations/{self.installation_id}/access_tokens"
        try:
            async with InstrumentedAsyncClient("GitHub API", timeout=10.0, **self._client_kwargs) as client:
                response = await client.post(
                    endpoint,
                    headers={"Authorization": f"Bearer {app_jwt}", "Accept": "application/vnd.github+json"},
                )
        except httpx.HTTPError as e:
            raise AuthenticationError(f"cannot get auth token: {e}") from e

        if response.status_code not in (200, 201):
            raise AuthenticationError(
                f"cannot get auth token for installation {self.installation_id}: status {response.status_code}"
            )

        try:
            token = response.json().get("token")
        except (ValueError, AttributeError) as e:
            raise AuthenticationError(
                f"cannot get auth token for installation {self.installation_id}: malformed response"
            ) from e
        if not token:
            raise AuthenticationError("authentication failed: empty installation token")

        logger.info(f"auth token is created for installation {self.installation_id}")
        self._token = token
        return token


class GitHubProvider(SourceControlProvider):
    name = SCM.GITHUB.value

    def __init__(
        self,
        token: InstallationToken,
        gateway: Optional[GatewayClient] = None,
        report_enabled: Optional[bool] = None,
        use_checks: Optional[bool] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.token = token
        self.gateway = gateway
        self.report_enabled = settings.REPORT_STATUS if report_enabled is None else report_enabled
        self.use_checks = settings.USE_CHECKS if use_checks is None else use_checks
        self._transport = transport

    async def resolve_clone_url(self, event: PushEvent) -> str:
        if not event.repository.private:
            return event.repository.clone_url

        token = await self.token.get_token()
        return embed_credentials(event.repository.clone_url, str(self.token.installation_id), token)

    async def _fetch_logs(self, status: PipelineStatus, context: str) -> str:
        if self.gateway is None:
            return ""
        try:
            return await self.gateway.get_logs(status.event_info, context)
        except (HTTPRequestError, httpx.HTTPError) as e:
            logger.warning(f"Unable to fetch pipeline logs for {context}: {e}")
            return ""

    async def report_status(self, status: PipelineStatus) -> None:
        if not self.report_enabled or not status.commit_statuses:
            return

        try:
            client = GitHubStatusClient(
                await self.token.get_token(), app_id=self.token.app_id, transport=self._transport
            )
            for commit_status in status.statuses():
                if self.use_checks:
                    logs = ""
                    if commit_status.state != STATUS_PENDING:
                        logs = await self._fetch_logs(status, commit_status.context)
                    await client.report_check(commit_status, status.event_info, logs)
                else:
                    await client.create_status(commit_status, status.event_info)
        except (PipelineError, HTTPRequestError, ValueError, KeyError) as e:
            # ValueError covers undecodable JSON bodies
            status_reports_total.labels(scm=self.name, result="failure").inc()
            logger.error(f"failed to report status, error: {e}")
            return

        status_reports_total.labels(scm=self.name, result="success").inc()
        status.clear()
