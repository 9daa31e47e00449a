from abc import ABC, abstractmethod

from gitdeploy.models.push_event import PushEvent
from gitdeploy.models.status import PipelineStatus


class SourceControlProvider(ABC):
    """Per-SCM behaviour of the pipeline. One instance lives for one pipeline run."""

    name: str = ""

    @abstractmethod
    async def resolve_clone_url(self, event: PushEvent) -> str:
        """
        Returns a clone URL embedding whatever credential the repository needs.
        :param event: The push being processed
        :return: The clone URL, unchanged for public repositories
        """

    @abstractmethod
    async def report_status(self, status: PipelineStatus) -> None:
        """
        Flushes the collected statuses to the SCM and clears them on success.
        Reporting failures are logged, never raised.
        """
