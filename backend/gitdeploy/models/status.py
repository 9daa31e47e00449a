"""
Pipeline status models.

A PipelineStatus collects one CommitStatus per context (the stack context or a
function name) until it is flushed to the SCM reporter, after which it is
cleared so the same set is never reported twice.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from gitdeploy.core.constants import (
    STACK_CONTEXT,
    STATUS_FAILURE,
    STATUS_PENDING,
    STATUS_SUCCESS,
)
from gitdeploy.models.push_event import PushEvent

VALID_STATES = (STATUS_PENDING, STATUS_SUCCESS, STATUS_FAILURE)


class CommitStatus(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    state: str = Field(..., alias="status")
    description: str = ""
    context: str
    target_url: Optional[str] = None


class EventInfo(BaseModel):
    """The parts of a push event the status reporters need."""

    model_config = ConfigDict(populate_by_name=True)

    service: str = ""
    owner: str
    owner_id: int = Field(0, alias="owner-id")
    repository: str
    sha: str
    url: str = ""
    image: str = ""
    installation_id: int = Field(0, alias="installationID")
    private: bool = False
    scm: str = ""
    repo_url: str = Field("", alias="repo-url")

    @classmethod
    def from_push_event(cls, event: PushEvent) -> "EventInfo":
        return cls(
            owner=event.owner,
            owner_id=event.repository.owner.id,
            repository=event.repo_name,
            sha=event.after_commit_id,
            url=event.repository.repository_url,
            installation_id=event.installation.id,
            private=event.repository.private,
            scm=event.scm.value,
            repo_url=event.repository.repository_url,
        )


class PipelineStatus(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    event_info: EventInfo = Field(..., alias="event")
    commit_statuses: Dict[str, CommitStatus] = Field(default_factory=dict, alias="commit-statuses")

    def add_status(self, state: str, description: str, context: str) -> CommitStatus:
        if state not in VALID_STATES:
            raise ValueError(f"Invalid status state: {state}")
        status = CommitStatus(state=state, description=description, context=context)
        # Replace rather than update so the latest status moves to the end
        self.commit_statuses.pop(context, None)
        self.commit_statuses[context] = status
        return status

    def statuses(self) -> List[CommitStatus]:
        return list(self.commit_statuses.values())

    def clear(self) -> None:
        self.commit_statuses = {}

    def to_json(self) -> bytes:
        return self.model_dump_json(by_alias=True).encode("utf-8")


def is_stack_context(context: str) -> bool:
    return context == STACK_CONTEXT
