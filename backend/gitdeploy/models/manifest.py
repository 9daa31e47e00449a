"""
Function manifest (stack.yml) models.

Only the parts of the manifest the pipeline reads are modelled. Environment
variable substitution is not performed.
"""

from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from gitdeploy.core.exceptions import ManifestError


def _scalar(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _stringify(values: Optional[Dict[str, Any]]) -> Optional[Dict[str, str]]:
    if values is None:
        return None
    return {str(k): _scalar(v) for k, v in values.items()}


class FunctionSpec(BaseModel):
    """Build and deploy declaration of a single function."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: str = ""
    lang: str = ""
    handler: str = ""
    image: str
    build_args: Dict[str, str] = Field(default_factory=dict)
    environment: Dict[str, str] = Field(default_factory=dict)
    secrets: List[str] = Field(default_factory=list)
    labels: Optional[Dict[str, str]] = None
    annotations: Optional[Dict[str, str]] = None

    @field_validator("build_args", "environment", mode="before")
    @classmethod
    def _coerce_mapping(cls, v):
        return _stringify(v) or {}

    @field_validator("labels", "annotations", mode="before")
    @classmethod
    def _coerce_optional_mapping(cls, v):
        return _stringify(v)

    @field_validator("secrets", mode="before")
    @classmethod
    def _coerce_secrets(cls, v):
        return [] if v is None else v


class FunctionManifest(BaseModel):
    """Ordered mapping of function name to its declaration."""

    functions: Dict[str, FunctionSpec]

    def names(self) -> List[str]:
        return list(self.functions)

    def get(self, name: str) -> FunctionSpec:
        return self.functions[name]

    def secret_count(self) -> int:
        return sum(len(fn.secrets) for fn in self.functions.values())


def parse_manifest(content: str) -> FunctionManifest:
    """Parses stack.yml content. Raises ManifestError on any problem."""
    try:
        document = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ManifestError(f"unable to parse stack file: {e}") from e

    if not isinstance(document, dict):
        raise ManifestError("stack file must be a mapping")

    raw_functions = document.get("functions")
    if not isinstance(raw_functions, dict) or not raw_functions:
        raise ManifestError("stack file declares no functions")

    functions: Dict[str, FunctionSpec] = {}
    for raw_name, raw_spec in raw_functions.items():
        name = str(raw_name).strip()
        if not isinstance(raw_spec, dict):
            raise ManifestError(f"function {name} must be a mapping")
        try:
            functions[name] = FunctionSpec(name=name, **raw_spec)
        except (ValidationError, TypeError) as e:
            raise ManifestError(f"invalid declaration for function {name}: {e}") from e

    return FunctionManifest(functions=functions)


def load_manifest(path: str) -> FunctionManifest:
    try:
        with open(path, "r", encoding="utf-8") as stack_file:
            return parse_manifest(stack_file.read())
    except OSError as e:
        raise ManifestError(f"unable to read stack file {path}: {e.strerror}") from e
