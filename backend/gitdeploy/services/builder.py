"""
External build step.

The build tool turns a cloned repository into one ``build/<function>``
directory per function. The packager only relies on that directory layout.
"""

import logging
import os
from abc import ABC, abstractmethod

from gitdeploy.core.constants import BUILD_DIR_NAME, STACK_FILE_NAME
from gitdeploy.core.exceptions import PackagingError
from gitdeploy.services.cli_base import CLITool

logger = logging.getLogger(__name__)


class BuildOutputProducer(ABC):
    @abstractmethod
    async def produce(self, clone_path: str) -> str:
        """Build the repository and return the directory holding build/<function>."""


class FaasCliBuilder(CLITool, BuildOutputProducer):
    cli_command = "faas-cli"
    error_class = PackagingError

    async def produce(self, clone_path: str) -> str:
        logger.info(f"Running shrinkwrap build in {clone_path}")
        stdout, stderr, returncode = await self._execute_command(
            ["build", "-f", STACK_FILE_NAME, "--shrinkwrap"], cwd=clone_path
        )
        if returncode != 0:
            raise PackagingError(f"shrinkwrap build failed: {stderr.decode(errors='replace').strip()}")
        return clone_path


def function_build_dir(build_root: str, function_name: str) -> str:
    """Returns build/<function> under build_root, raising if the build step did not create it."""
    path = os.path.join(build_root, BUILD_DIR_NAME, function_name)
    if not os.path.isdir(path):
        raise PackagingError(f"build output missing for function {function_name}: {path}", function_name)
    return path
