import logging
from typing import Optional

from gitdeploy.core.constants import GITLAB_TOKEN_SECRET_NAME
from gitdeploy.core.exceptions import ConfigurationError
from gitdeploy.core.http_utils import HTTPRequestError
from gitdeploy.core.metrics import status_reports_total
from gitdeploy.core.secrets import read_secret
from gitdeploy.models.push_event import SCM, PushEvent
from gitdeploy.models.status import PipelineStatus
from gitdeploy.services.gateway import GatewayClient
from gitdeploy.services.scm.base import SourceControlProvider
from gitdeploy.services.scm.github import embed_credentials

logger = logging.getLogger(__name__)


class GitLabProvider(SourceControlProvider):
    """
    GitLab pushes clone with a long-lived API token and report a flat commit
    status through the gateway's gitlab-status function.
    """

    name = SCM.GITLAB.value

    def __init__(self, gateway: GatewayClient, api_token: Optional[str] = None):
        self.gateway = gateway
        self._api_token = api_token

    def _get_api_token(self) -> str:
        if self._api_token is None:
            try:
                self._api_token = read_secret(GITLAB_TOKEN_SECRET_NAME)
            except ConfigurationError as e:
                raise ConfigurationError(
                    f"cannot read api token from GitLab in secret `{GITLAB_TOKEN_SECRET_NAME}`: {e}"
                ) from e
        return self._api_token

    async def resolve_clone_url(self, event: PushEvent) -> str:
        if not event.repository.private:
            return event.repository.clone_url
        return embed_credentials(event.repository.clone_url, event.owner, self._get_api_token())

    async def report_status(self, status: PipelineStatus) -> None:
        if not status.commit_statuses:
            return
        try:
            await self.gateway.post_gitlab_status(status)
        except HTTPRequestError as e:
            status_reports_total.labels(scm=self.name, result="failure").inc()
            logger.error(f"failed to report GitLab status: {e}")
            return

        status_reports_total.labels(scm=self.name, result="success").inc()
        status.clear()
