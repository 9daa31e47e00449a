from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from gitdeploy.core.exceptions import DeploymentError


class BuildContextArchive(BaseModel):
    """A packaged function ready to be sent to the gateway."""

    function_name: str
    file_name: str
    image_name: str


class PackagingResult(BaseModel):
    archives: List[BuildContextArchive] = Field(default_factory=list)
    errors: Dict[str, str] = Field(default_factory=dict)

    @property
    def failed_functions(self) -> List[str]:
        return list(self.errors)


class DeployOutcome(BaseModel):
    function_name: str
    succeeded: bool
    error: Optional[str] = None


class BatchResult(BaseModel):
    attempted: int = 0
    outcomes: List[DeployOutcome] = Field(default_factory=list)

    @property
    def failed(self) -> List[str]:
        return [o.function_name for o in self.outcomes if not o.succeeded]

    @property
    def deployed(self) -> List[str]:
        return [o.function_name for o in self.outcomes if o.succeeded]

    @property
    def error(self) -> Optional[DeploymentError]:
        if not self.failed:
            return None
        return DeploymentError(self.failed)
