"""
CLI Tool Base Class

Shared subprocess handling for the external tools the pipeline drives
(git, faas-cli).
"""

import asyncio
import logging
import shutil
from typing import List, Optional, Tuple, Type

from gitdeploy.core.exceptions import PipelineError

logger = logging.getLogger(__name__)


class CLITool:
    """
    Base class for wrappers around a CLI binary.

    Subclasses set ``cli_command`` and the PipelineError subclass raised when
    the binary cannot be started at all.
    """

    cli_command: str = ""
    error_class: Type[PipelineError] = PipelineError

    def is_tool_available(self) -> bool:
        """Check if the CLI tool is available in the system PATH."""
        if not self.cli_command:
            return False
        return shutil.which(self.cli_command) is not None

    async def _execute_command(self, args: List[str], cwd: Optional[str] = None) -> Tuple[bytes, bytes, int]:
        """Run the tool and return stdout, stderr, returncode."""
        logger.debug(f"Running {self.cli_command} {args[0] if args else ''} in {cwd or '.'}")
        try:
            process = await asyncio.create_subprocess_exec(
                self.cli_command,
                *args,
                cwd=cwd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise self.error_class(f"cannot run {self.cli_command}: {e.strerror}") from e
        stdout, stderr = await process.communicate()
        return stdout, stderr, process.returncode
