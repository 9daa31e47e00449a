"""
Pipeline Exceptions

Every failure raised by the pipeline derives from PipelineError so the push
handler can report it on the stack context with a single except clause.
"""

from typing import List, Optional


class PipelineError(Exception):
    """Base exception for pipeline failures."""


class ConfigurationError(PipelineError):
    """Missing identity fields or invalid configuration. Raised before side effects."""


class AuthenticationError(PipelineError):
    """Token exchange or signature failure. Fatal for the current push."""


class FetchError(PipelineError):
    """Clone or checkout failure."""


class ManifestError(PipelineError):
    """The function manifest cannot be read or parsed."""


class TemplateError(PipelineError):
    """Templates could not be fetched or do not cover every function language."""


class PackagingError(PipelineError):
    """The build step or the archive for a function failed."""

    def __init__(self, message: str, function_name: Optional[str] = None):
        super().__init__(message)
        self.function_name = function_name


class DeploymentError(PipelineError):
    """Aggregate error naming every function that failed to deploy."""

    def __init__(self, failed_functions: List[str]):
        self.failed_functions = list(failed_functions)
        super().__init__(f"{','.join(self.failed_functions)} failed to be deployed via buildshiprun")
