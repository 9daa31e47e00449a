"""
GitHub check runs and commit statuses.

Maps pipeline states onto GitHub's check-run model:

    pending          -> queued
    success/failure  -> completed, conclusion success/failure
    anything else    -> completed, conclusion neutral

Check runs are upserted per (commit, context): an existing run created by
this app for the same context is updated in place instead of duplicated.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

from gitdeploy.core.config import settings
from gitdeploy.core.constants import (
    CHECK_CONCLUSION_FAILURE,
    CHECK_CONCLUSION_NEUTRAL,
    CHECK_CONCLUSION_SUCCESS,
    CHECK_STATUS_COMPLETED,
    CHECK_STATUS_QUEUED,
    LOG_FRAME,
    MAX_CHECK_MESSAGE_LENGTH,
    STATUS_FAILURE,
    STATUS_SUCCESS,
)
from gitdeploy.core.http_utils import HTTPRequestError, InstrumentedAsyncClient, is_success
from gitdeploy.models.status import CommitStatus, EventInfo, is_stack_context

logger = logging.getLogger(__name__)

_GITHUB_API_TIMEOUT = 10.0

# GitHub rejects commit status descriptions longer than this
_MAX_STATUS_DESCRIPTION = 140


def get_check_run_status(state: str) -> str:
    if state in (STATUS_SUCCESS, STATUS_FAILURE):
        return CHECK_STATUS_COMPLETED
    return CHECK_STATUS_QUEUED


def get_check_run_conclusion(state: str) -> str:
    if state == STATUS_FAILURE:
        return CHECK_CONCLUSION_FAILURE
    if state == STATUS_SUCCESS:
        return CHECK_CONCLUSION_SUCCESS
    return CHECK_CONCLUSION_NEUTRAL


def get_check_run_title(status: CommitStatus) -> str:
    if is_stack_context(status.context):
        return "Deploy to OpenFaaS"
    return f"Build {status.context}"


def get_check_run_summary(status: CommitStatus, url: str) -> str:
    if status.state in (STATUS_SUCCESS, STATUS_FAILURE):
        return f"[{status.description}]({url})"
    return status.description


def truncate(max_length: int, message: str) -> str:
    """Keeps the last max_length characters of message."""
    if max_length <= 0:
        return ""
    if len(message) > max_length:
        return message[-max_length:]
    return message


def format_log(logs: str, max_length: int = MAX_CHECK_MESSAGE_LENGTH) -> str:
    """
    Wraps logs in a shell code fence, truncating to max_length.

    The tail of the log is kept since the last lines usually explain a
    failure. When truncating, a warning with the original size is prepended.
    The returned text never exceeds max_length.
    """
    frame_length = len(LOG_FRAME.format(""))

    if len(logs) + frame_length <= max_length:
        return LOG_FRAME.format(logs)

    warning = (
        f"Warning: log size ({len(logs)}) bytes exceeded ({max_length}) bytes so was truncated. "
        "See dashboard for full logs.\n\n"
    )
    keep = max_length - len(warning) - frame_length
    if keep <= 0:
        return LOG_FRAME.format(truncate(max_length - frame_length, logs))
    return LOG_FRAME.format(warning + truncate(keep, logs))


def build_public_status_url(status: CommitStatus, event: EventInfo, public_url: Optional[str] = None) -> str:
    """Links successful builds to the deployed function when a public gateway URL is known."""
    public_url = settings.GATEWAY_PUBLIC_URL if public_url is None else public_url
    if status.state == STATUS_SUCCESS and public_url:
        base = public_url.rstrip("/")
        if is_stack_context(status.context):
            return base
        return f"{base}/function/{event.owner}-{status.context}"
    return event.url


class GitHubStatusClient:
    """Reports pipeline statuses to one repository with an installation token."""

    def __init__(
        self,
        token: str,
        app_id: Optional[str] = None,
        api_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.token = token
        self.app_id = settings.GITHUB_APP_ID if app_id is None else app_id
        self.api_url = (api_url or settings.GITHUB_API_URL).rstrip("/")
        self._client_kwargs = {"transport": transport} if transport else {}

    def _get_auth_headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.token}", "Accept": "application/vnd.github+json"}

    async def _request(self, method: str, endpoint: str, **kwargs) -> httpx.Response:
        try:
            async with InstrumentedAsyncClient("GitHub API", timeout=_GITHUB_API_TIMEOUT, **self._client_kwargs) as client:
                response = await client.request(
                    method, f"{self.api_url}{endpoint}", headers=self._get_auth_headers(), **kwargs
                )
        except httpx.HTTPError as e:
            raise HTTPRequestError(f"GitHub API {method} {endpoint} failed: {e}") from e

        if not is_success(response):
            raise HTTPRequestError(
                f"GitHub API {method} {endpoint} returned {response.status_code}: {response.text}",
                status_code=response.status_code,
            )
        return response

    async def list_check_runs(self, event: EventInfo, check_name: str) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {"check_name": check_name}
        if self.app_id:
            params["app_id"] = self.app_id
        response = await self._request(
            "GET", f"/repos/{event.owner}/{event.repository}/commits/{event.sha}/check-runs", params=params
        )
        return response.json().get("check_runs", [])

    async def create_status(self, status: CommitStatus, event: EventInfo) -> None:
        url = build_public_status_url(status, event)
        logger.info(
            f"Status: {status.state}, Context: {status.context}, GitHub AppID: {self.app_id}, "
            f"Repo: {event.repository}, Owner: {event.owner}"
        )
        await self._request(
            "POST",
            f"/repos/{event.owner}/{event.repository}/statuses/{event.sha}",
            json={
                "state": status.state,
                "target_url": url,
                "description": status.description[:_MAX_STATUS_DESCRIPTION],
                "context": status.context,
            },
        )

    async def report_check(self, status: CommitStatus, event: EventInfo, logs: str = "") -> None:
        url = build_public_status_url(status, event)
        check_status = get_check_run_status(status.state)
        now = datetime.now(timezone.utc).isoformat()

        logger.info(
            f"Check: {status.state}, Context: {status.context}, GitHub AppID: {self.app_id}, "
            f"Repo: {event.repository}, Owner: {event.owner}"
        )

        body: Dict[str, Any] = {
            "status": check_status,
            "details_url": url,
            "output": {
                "title": get_check_run_title(status),
                "summary": get_check_run_summary(status, url),
                "text": format_log(logs) if logs else "",
            },
        }
        if check_status == CHECK_STATUS_COMPLETED:
            body["conclusion"] = get_check_run_conclusion(status.state)
            body["completed_at"] = now

        existing = await self.list_check_runs(event, status.context)
        if not existing:
            body.update({"name": status.context, "head_sha": event.sha, "started_at": now})
            logger.info(f"Creating check run {status.context}")
            await self._request("POST", f"/repos/{event.owner}/{event.repository}/check-runs", json=body)
        else:
            check_run = existing[0]
            body["name"] = check_run.get("name", status.context)
            logger.info(f"Updating check run {body['name']}")
            await self._request(
                "PATCH", f"/repos/{event.owner}/{event.repository}/check-runs/{check_run['id']}", json=body
            )
