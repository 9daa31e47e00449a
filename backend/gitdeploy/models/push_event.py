"""
Pydantic models for normalized push events.

Both GitHub and GitLab pushes are translated into this shape upstream, the
``scm`` field says which provider the event came from. Unknown fields are
ignored so raw provider payloads can be parsed directly.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class SCM(str, Enum):
    GITHUB = "github"
    GITLAB = "gitlab"


class Owner(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    login: str = ""
    id: int = 0
    email: Optional[str] = None


class Repository(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    name: str = ""
    full_name: str = ""
    clone_url: str
    repository_url: str = Field("", alias="html_url")
    private: bool = False
    owner: Owner = Field(default_factory=Owner)


class Installation(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    id: int = 0


class PushEvent(BaseModel):
    """Immutable description of a push that triggers the pipeline."""

    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    scm: SCM = SCM.GITHUB
    ref: str = ""
    after_commit_id: str = Field(..., alias="after")
    repository: Repository
    installation: Installation = Field(default_factory=Installation)

    @property
    def owner(self) -> str:
        return self.repository.owner.login

    @property
    def repo_name(self) -> str:
        return self.repository.name

    @property
    def branch(self) -> str:
        prefix = "refs/heads/"
        if self.ref.startswith(prefix):
            return self.ref[len(prefix):]
        return self.ref
