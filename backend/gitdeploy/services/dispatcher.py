"""
Deployment Dispatcher

Sends each packaged function to the gateway's buildshiprun function. A
failure deploying one function is recorded and the batch carries on; the
caller gets one BatchResult naming every failed function.
"""

import asyncio
import json
import logging
import os
from typing import Dict, List, Optional

from gitdeploy.core.config import settings
from gitdeploy.core.constants import (
    GATEWAY_BUILDSHIPRUN_PATH,
    PRE_REGISTRATION_HOST_PATTERN,
    STATUS_FAILURE,
    STATUS_PENDING,
    STATUS_SUCCESS,
)
from gitdeploy.core.http_utils import HTTPRequestError
from gitdeploy.core.metrics import functions_deployed_total
from gitdeploy.models.deploy import BatchResult, BuildContextArchive, DeployOutcome
from gitdeploy.models.manifest import FunctionManifest, FunctionSpec
from gitdeploy.models.push_event import PushEvent
from gitdeploy.models.status import PipelineStatus
from gitdeploy.services.audit import AuditClient
from gitdeploy.services.gateway import GatewayClient
from gitdeploy.services.scm.base import SourceControlProvider

logger = logging.getLogger(__name__)


def needs_image_registration(image: str) -> bool:
    return PRE_REGISTRATION_HOST_PATTERN in image


def format_byte_size(size: float) -> str:
    for unit in ("B", "K", "M"):
        if size < 1024:
            return f"{size:.0f}{unit}" if unit == "B" else f"{size:.1f}{unit}"
        size /= 1024
    return f"{size:.1f}G"


def build_deploy_headers(archive: BuildContextArchive, event: PushEvent, spec: FunctionSpec) -> Dict[str, str]:
    """Per-function metadata so buildshiprun never has to parse the manifest."""
    headers = {
        "Repo": event.repo_name,
        "Owner": event.owner,
        "Url": event.repository.clone_url,
        "Installation_id": str(event.installation.id),
        "Service": archive.function_name,
        "Image": archive.image_name,
        "Sha": event.after_commit_id,
        "Scm": event.scm.value,
        "Private": "true" if event.repository.private else "false",
        "Repo-URL": event.repository.repository_url,
        "Owner-ID": str(event.repository.owner.id),
        "Env": json.dumps(spec.environment),
        "Secrets": json.dumps(spec.secrets),
    }
    if spec.labels is not None:
        headers["Labels"] = json.dumps(spec.labels)
    if spec.annotations is not None:
        headers["Annotations"] = json.dumps(spec.annotations)
    return headers


class Dispatcher:
    def __init__(
        self,
        gateway: GatewayClient,
        reporter: SourceControlProvider,
        audit: Optional[AuditClient] = None,
        concurrency: Optional[int] = None,
    ):
        self.gateway = gateway
        self.reporter = reporter
        self.audit = audit or AuditClient()
        self.concurrency = max(1, settings.DEPLOY_CONCURRENCY if concurrency is None else concurrency)
        # Serializes add+flush so concurrent functions never clear each other's statuses
        self._status_lock = asyncio.Lock()

    async def _report(self, status: PipelineStatus, state: str, description: str, context: str) -> None:
        async with self._status_lock:
            status.add_status(state, description, context)
            await self.reporter.report_status(status)

    async def _register_image(self, image: str) -> None:
        logger.info(f"Registering image for {image}")
        try:
            await self.gateway.register_image(image)
        except HTTPRequestError as e:
            # Usually means the repository already exists
            logger.warning(f"register-image failed: {e}")

    async def deploy_function(
        self,
        archive: BuildContextArchive,
        event: PushEvent,
        manifest: FunctionManifest,
        status: PipelineStatus,
    ) -> None:
        """Raises HTTPRequestError or OSError when the function could not be deployed."""
        logger.info(f"Deploying: {archive.function_name}, image: {archive.image_name}")

        await self._report(
            status,
            STATUS_PENDING,
            f"{archive.function_name} function build started, image: {archive.image_name}",
            archive.function_name,
        )

        size = os.path.getsize(archive.file_name)
        await self.audit.post(
            f"Building: {archive.function_name}, tar: {format_byte_size(size)}",
            event.owner,
            event.repo_name,
        )

        with open(archive.file_name, "rb") as tar_file:
            payload = tar_file.read()

        headers = build_deploy_headers(archive, event, manifest.get(archive.function_name))
        try:
            await self.gateway.invoke_with_hmac(GATEWAY_BUILDSHIPRUN_PATH, payload, headers)
        except HTTPRequestError as e:
            raise HTTPRequestError(
                f"unable to deploy function via buildshiprun: {e} for {archive.function_name}",
                e.status_code,
            ) from e

    async def _deploy_one(
        self,
        semaphore: asyncio.Semaphore,
        archive: BuildContextArchive,
        event: PushEvent,
        manifest: FunctionManifest,
        status: PipelineStatus,
    ) -> DeployOutcome:
        async with semaphore:
            if needs_image_registration(archive.image_name):
                await self._register_image(archive.image_name)

            try:
                await self.deploy_function(archive, event, manifest, status)
            except (HTTPRequestError, OSError) as e:
                logger.error(str(e))
                functions_deployed_total.labels(result="failure").inc()
                await self._report(
                    status, STATUS_FAILURE, f"{archive.function_name} deploy failed", archive.function_name
                )
                return DeployOutcome(function_name=archive.function_name, succeeded=False, error=str(e))

            logger.info(f"Service deployed: {archive.function_name}, owner: {event.owner}")
            functions_deployed_total.labels(result="success").inc()
            await self._report(
                status,
                STATUS_SUCCESS,
                f"{archive.function_name} deployed, image: {archive.image_name}",
                archive.function_name,
            )
            return DeployOutcome(function_name=archive.function_name, succeeded=True)

    async def deploy(
        self,
        archives: List[BuildContextArchive],
        event: PushEvent,
        manifest: FunctionManifest,
        status: PipelineStatus,
    ) -> BatchResult:
        """
        Deploys every archive, at most ``concurrency`` at a time.

        Outcomes keep archive order regardless of completion order.
        """
        semaphore = asyncio.Semaphore(self.concurrency)
        tasks = [self._deploy_one(semaphore, archive, event, manifest, status) for archive in archives]
        results = await asyncio.gather(*tasks, return_exceptions=True)

        outcomes: List[DeployOutcome] = []
        for archive, outcome in zip(archives, results):
            if isinstance(outcome, Exception):
                logger.error(f"Deploy of {archive.function_name} raised {type(outcome).__name__}: {outcome}")
                functions_deployed_total.labels(result="failure").inc()
                outcome = DeployOutcome(function_name=archive.function_name, succeeded=False, error=str(outcome))
            outcomes.append(outcome)

        result = BatchResult(attempted=len(archives), outcomes=outcomes)
        if result.failed:
            logger.error(str(result.error))
        return result
