"""
Gateway client.

Every request to a platform function carries an HMAC-SHA1 signature of the
exact body in the X-Cloud-Signature header.
"""

import json
import logging
import os
from typing import Dict, Iterable, Optional
from urllib.parse import urlsplit, urlunsplit

import httpx

from gitdeploy.core.config import settings
from gitdeploy.core.constants import (
    GATEWAY_GARBAGE_COLLECT_PATH,
    GATEWAY_GITLAB_STATUS_PATH,
    GATEWAY_IMPORT_SECRETS_PATH,
    GATEWAY_PIPELINE_LOG_PATH,
    GATEWAY_REGISTER_IMAGE_PATH,
    GATEWAY_SUCCESS_CODES,
    SECRETS_FILE_NAME,
    SIGNATURE_HEADER,
)
from gitdeploy.core.exceptions import PipelineError
from gitdeploy.core.http_utils import HTTPRequestError, InstrumentedAsyncClient
from gitdeploy.core.security import signature_header_value
from gitdeploy.models.manifest import FunctionManifest
from gitdeploy.models.push_event import PushEvent
from gitdeploy.models.status import EventInfo, PipelineStatus

logger = logging.getLogger(__name__)


def create_service_url(url: str, suffix: str) -> str:
    """Appends a DNS suffix to the host of url, keeping scheme, port and path."""
    if not suffix:
        return url
    parts = urlsplit(url)
    netloc = f"{parts.hostname}.{suffix}"
    if parts.port:
        netloc = f"{netloc}:{parts.port}"
    return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))


class GatewayClient:
    def __init__(
        self,
        payload_secret: str,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (settings.GATEWAY_URL if base_url is None else base_url).rstrip("/")
        self.payload_secret = payload_secret
        self.timeout = settings.HTTP_TIMEOUT_SECONDS if timeout is None else timeout
        self._client_kwargs = {"transport": transport} if transport else {}

    def url_for(self, path: str, base_url: Optional[str] = None) -> str:
        return f"{(base_url or self.base_url).rstrip('/')}/{path.lstrip('/')}"

    def _client(self) -> InstrumentedAsyncClient:
        return InstrumentedAsyncClient("Gateway", timeout=self.timeout, **self._client_kwargs)

    def signed_headers(self, payload: bytes, headers: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        signed = dict(headers or {})
        if self.payload_secret:
            signed[SIGNATURE_HEADER] = signature_header_value(payload, self.payload_secret)
        return signed

    async def invoke_with_hmac(
        self,
        path: str,
        payload: bytes,
        headers: Optional[Dict[str, str]] = None,
        base_url: Optional[str] = None,
    ) -> httpx.Response:
        """
        POSTs a signed payload to a gateway function.

        Raises HTTPRequestError on transport errors and on any status other
        than 200/202.
        """
        url = self.url_for(path, base_url)
        try:
            async with self._client() as client:
                response = await client.post(url, content=payload, headers=self.signed_headers(payload, headers))
        except httpx.HTTPError as e:
            raise HTTPRequestError(f"error reaching {path}: {e}") from e

        if response.status_code not in GATEWAY_SUCCESS_CODES:
            raise HTTPRequestError(
                f"bad code: {response.status_code}, message: {response.text}",
                status_code=response.status_code,
            )
        return response

    async def register_image(self, image: str) -> None:
        payload = json.dumps({"image": image}).encode("utf-8")
        response = await self.invoke_with_hmac(GATEWAY_REGISTER_IMAGE_PATH, payload)
        logger.info(f"register-image: {response.text}")

    async def import_secrets(self, event: PushEvent, manifest: FunctionManifest, clone_path: str) -> bool:
        """
        Sends the repository's secrets.yml to import-secrets.

        Returns False when the repository has no secrets file.
        """
        secret_path = os.path.join(clone_path, SECRETS_FILE_NAME)
        if not os.path.isfile(secret_path):
            return False

        try:
            with open(secret_path, "rb") as secret_file:
                payload = secret_file.read()
        except OSError as e:
            raise PipelineError(f"unable to read {SECRETS_FILE_NAME}: {e.strerror}") from e

        try:
            await self.invoke_with_hmac(GATEWAY_IMPORT_SECRETS_PATH, payload, {"Owner": event.owner})
        except HTTPRequestError as e:
            raise HTTPRequestError(f"import-secrets returned unexpected status: {e}", e.status_code) from e

        logger.info(
            f"Parsed sealed secrets for owner: {event.owner}. "
            f"Parsed {manifest.secret_count()} secrets, from {len(manifest.functions)} functions"
        )
        return True

    async def collect_garbage(self, event: PushEvent, function_names: Iterable[str]) -> None:
        payload = json.dumps(
            {"owner": event.owner, "repo": event.repo_name, "functions": list(function_names)}
        ).encode("utf-8")
        await self.invoke_with_hmac(GATEWAY_GARBAGE_COLLECT_PATH, payload)

    async def get_logs(self, event: EventInfo, function_name: str) -> str:
        params = {
            "repoPath": f"{event.owner}/{event.repository}",
            "commitSHA": event.sha,
            "function": function_name,
        }
        async with self._client() as client:
            response = await client.get(self.url_for(GATEWAY_PIPELINE_LOG_PATH), params=params)
        if response.status_code != 200:
            raise HTTPRequestError(f"pipeline-log returned {response.status_code}", response.status_code)
        return response.text

    async def post_gitlab_status(self, status: PipelineStatus, dns_suffix: Optional[str] = None) -> None:
        suffix = settings.DNS_SUFFIX if dns_suffix is None else dns_suffix
        await self.invoke_with_hmac(
            GATEWAY_GITLAB_STATUS_PATH,
            status.to_json(),
            {"Content-Type": "application/json"},
            base_url=create_service_url(self.base_url, suffix),
        )
