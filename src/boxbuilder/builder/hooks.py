"""
Step hooks: the effects applied inside an ephemeral container before it is
committed.
"""

import logging
import sys
from pathlib import Path
from typing import Callable, Optional

from .. import constants
from ..exceptions import NonZeroExitError
from ..runtime import Runtime

logger = logging.getLogger(__name__)

OutputSink = Callable[[bytes], None]


def stdout_sink(chunk: bytes):
    sys.stdout.buffer.write(chunk)
    sys.stdout.buffer.flush()


class RunHook:
    """
    Starts the container (whose command is the step's shell command),
    streams its output and fails on a non-zero exit code.
    """

    def __init__(self, runtime: Runtime, output: Optional[OutputSink] = None):
        self.runtime = runtime
        self.output = output or stdout_sink

    def __call__(self, container_id: str) -> Optional[str]:
        # attach before starting so no output is lost
        stream = self.runtime.attach_container(container_id)
        self.runtime.start_container(container_id)

        self.output(f"{constants.OUTPUT_BEGIN}\n".encode())
        for chunk in stream:
            self.output(chunk)
        self.output(f"{constants.OUTPUT_END}\n".encode())

        exit_code = self.runtime.wait_container(container_id)
        if exit_code != 0:
            raise NonZeroExitError(container_id, exit_code)
        return None


class CopyHook:
    """Extracts a packaged archive at the container root."""

    def __init__(self, runtime: Runtime, archive: Path, cache_key: str):
        self.runtime = runtime
        self.archive = archive
        self.cache_key = cache_key

    def __call__(self, container_id: str) -> Optional[str]:
        logger.debug(f"[Copy] Extracting {self.archive} into '{container_id[:12]}'")
        self.runtime.copy_to_container(container_id, constants.ARCHIVE_ROOT, self.archive)
        return self.cache_key
