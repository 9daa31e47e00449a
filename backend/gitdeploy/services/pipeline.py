"""
Push pipeline.

Runs one push through clone, templates, build, packaging, deploy and status
reporting. Every collaborator that touches the network, a subprocess or the
secret store can be injected, so the pipeline can be exercised end to end
with fakes.

Fatal errors abort the run with a failure on the stack context; failures of
individual functions are collected and reported once at the end.
"""

import logging
import os
import time
from typing import Optional

import httpx

from gitdeploy.core.constants import (
    PAYLOAD_SECRET_NAME,
    STACK_CONTEXT,
    STACK_FILE_NAME,
    STATUS_FAILURE,
    STATUS_PENDING,
    STATUS_SUCCESS,
)
from gitdeploy.core.exceptions import ManifestError, PipelineError
from gitdeploy.core.http_utils import HTTPRequestError
from gitdeploy.core.metrics import pipeline_duration_seconds, pipeline_runs_total
from gitdeploy.core.secrets import read_secret
from gitdeploy.models.deploy import BatchResult, DeployOutcome
from gitdeploy.models.manifest import load_manifest
from gitdeploy.models.push_event import PushEvent
from gitdeploy.models.status import EventInfo, PipelineStatus
from gitdeploy.services.audit import AuditClient
from gitdeploy.services.builder import BuildOutputProducer, FaasCliBuilder
from gitdeploy.services.dispatcher import Dispatcher
from gitdeploy.services.fetcher import GitCliFetcher, RepoFetcher, clone_repository, validate_identity
from gitdeploy.services.gateway import GatewayClient
from gitdeploy.services.packager import package_functions
from gitdeploy.services.scm import SourceControlProvider, get_provider
from gitdeploy.services.templates import (
    TemplateFetcher,
    check_compatible_templates,
    existing_templates,
    validate_template_repos,
)

logger = logging.getLogger(__name__)


class PushPipeline:
    def __init__(
        self,
        fetcher: Optional[RepoFetcher] = None,
        builder: Optional[BuildOutputProducer] = None,
        template_fetcher: Optional[TemplateFetcher] = None,
        gateway: Optional[GatewayClient] = None,
        provider: Optional[SourceControlProvider] = None,
        audit: Optional[AuditClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        work_dir: Optional[str] = None,
    ):
        self.fetcher = fetcher or GitCliFetcher()
        self.builder = builder or FaasCliBuilder()
        self.template_fetcher = template_fetcher or TemplateFetcher()
        self.gateway = gateway
        self.provider = provider
        self.audit = audit or AuditClient(transport=transport)
        self.transport = transport
        self.work_dir = work_dir

    async def _fail(self, status: PipelineStatus, provider: SourceControlProvider, event: PushEvent, message: str):
        status.add_status(STATUS_FAILURE, message, STACK_CONTEXT)
        await provider.report_status(status)
        await self.audit.post(message, event.owner, event.repo_name)

    async def run(self, event: PushEvent) -> BatchResult:
        """
        Processes one push.

        Returns the BatchResult of the deploy, whose ``error`` names every
        function that failed to package or deploy. Raises a PipelineError for
        failures that stop the whole push.
        """
        # Configuration problems abort before any side effect
        validate_identity(event)
        template_repos = validate_template_repos()

        gateway = self.gateway or GatewayClient(read_secret(PAYLOAD_SECRET_NAME), transport=self.transport)
        provider = self.provider or get_provider(event, gateway, transport=self.transport)
        status = PipelineStatus(event_info=EventInfo.from_push_event(event))

        start_time = time.time()
        stage = "clone"
        try:
            status.add_status(STATUS_PENDING, "Deployment started", STACK_CONTEXT)
            await provider.report_status(status)

            clone_url = await provider.resolve_clone_url(event)
            clone_path = await clone_repository(self.fetcher, event, clone_url, self.work_dir)

            stack_path = os.path.join(clone_path, STACK_FILE_NAME)
            if not os.path.isfile(stack_path):
                raise ManifestError(f"{STACK_FILE_NAME} not found")

            stage = "template"
            await self.template_fetcher.fetch_templates(clone_path, template_repos)
            manifest = load_manifest(stack_path)
            check_compatible_templates(manifest, existing_templates(clone_path))

            stage = "build"
            build_root = await self.builder.produce(clone_path)

            stage = "secrets"
            try:
                if await gateway.import_secrets(event, manifest, clone_path):
                    await self.audit.post(
                        f"Parsed sealed secrets for owner: {event.owner}. Parsed {manifest.secret_count()} "
                        f"secrets, from {len(manifest.functions)} functions",
                        event.owner,
                        event.repo_name,
                    )
            except HTTPRequestError as e:
                raise PipelineError(f"failed to import secrets: {e}") from e

            stage = "package"
            packaging = package_functions(event, manifest, build_root)
            for name in packaging.errors:
                status.add_status(STATUS_FAILURE, f"{name} packaging failed", name)
            if packaging.errors:
                await provider.report_status(status)

            stage = "deploy"
            dispatcher = Dispatcher(gateway, provider, audit=self.audit)
            deployed = await dispatcher.deploy(packaging.archives, event, manifest, status)

            packaging_outcomes = [
                DeployOutcome(function_name=name, succeeded=False, error=error)
                for name, error in packaging.errors.items()
            ]
            result = BatchResult(
                attempted=deployed.attempted + len(packaging_outcomes),
                outcomes=packaging_outcomes + deployed.outcomes,
            )

            try:
                await gateway.collect_garbage(event, manifest.names())
            except HTTPRequestError as e:
                logger.warning(f"garbage-collect failed: {e}")
        except PipelineError as e:
            pipeline_runs_total.labels(scm=event.scm.value, result="error").inc()
            logger.error(f"{stage} error for {event.owner}/{event.repo_name}: {e}")
            await self._fail(status, provider, event, f"{stage} error: {e}")
            raise
        finally:
            pipeline_duration_seconds.observe(time.time() - start_time)

        if result.error is not None:
            pipeline_runs_total.labels(scm=event.scm.value, result="partial").inc()
            await self._fail(status, provider, event, str(result.error))
            return result

        pipeline_runs_total.labels(scm=event.scm.value, result="success").inc()
        status.add_status(STATUS_SUCCESS, f"Deployed {len(result.deployed)} function(s)", STACK_CONTEXT)
        await provider.report_status(status)
        await self.audit.post(
            f"Deployed {', '.join(result.deployed)} at {event.after_commit_id}", event.owner, event.repo_name
        )
        return result


async def run_pipeline(event: PushEvent) -> Optional[BatchResult]:
    """Background-task entry point; failures are already reported, so only log them here."""
    try:
        return await PushPipeline().run(event)
    except PipelineError as e:
        logger.error(f"Pipeline aborted for {event.owner}/{event.repo_name}: {e}")
        return None
