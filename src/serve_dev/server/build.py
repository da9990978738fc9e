"""Build program runner.

Runs ``<program> <target>`` with the server's own stdin/stdout/stderr so
build output shows up in the terminal. The completion callback fires for
every run, failed or not.

Builds are not serialized. Two changes that arrive while a build for the
same target is running start two independent processes.
"""

from __future__ import annotations

import asyncio
import logging
import shlex
import time
from collections.abc import Awaitable, Callable
from typing import Any

from serve_dev.errors import BuildError
from serve_dev.server.events import BuildResult

logger = logging.getLogger(__name__)

CompletionCallback = Callable[[BuildResult], None]

# Signature of asyncio.create_subprocess_exec
Spawner = Callable[..., Awaitable[Any]]


class BuildTrigger:
    """Spawn the build program for a target and report completion.

    Attributes:
        program: Build executable
    """

    def __init__(self, program: str = "make", spawn: Spawner | None = None) -> None:
        """Initialize the trigger.

        Args:
            program: Executable used to run build targets, passed through unchanged
            spawn: Process factory, defaults to asyncio.create_subprocess_exec
        """
        self.program = program
        self._spawn = spawn or asyncio.create_subprocess_exec
        self._tasks: set[asyncio.Task[BuildResult]] = set()

    def command(self, target: str) -> list[str]:
        """Argument vector for building ``target``."""
        return [self.program, target]

    async def _execute(self, target: str) -> BuildResult:
        argv = self.command(target)
        started = time.monotonic()
        try:
            process = await self._spawn(*argv)
        except OSError as e:
            error = BuildError(f"Cannot run {argv[0]}: {e}", program=self.program, target=target)
            logger.error(error.message)
            return BuildResult(target=target, returncode=None, error=error.message)

        returncode = await process.wait()
        return BuildResult(
            target=target,
            returncode=returncode,
            duration=time.monotonic() - started,
        )

    async def run(self, target: str, on_complete: CompletionCallback) -> BuildResult:
        """Build a target and invoke ``on_complete`` once it finishes.

        ``on_complete`` is called exactly once, including when the build
        fails or the program cannot be started.

        Args:
            target: Target passed as the last argument to the program
            on_complete: Called with the build result

        Returns:
            The build result
        """
        logger.info(shlex.join(self.command(target)))
        result = BuildResult(target=target, returncode=None)
        try:
            result = await self._execute(target)
        finally:
            if result.returncode not in (0, None):
                logger.warning(f"Build {target!r} exited with status {result.returncode}")
            else:
                logger.debug(f"Build finished: {result.to_dict()}")
            on_complete(result)
        return result

    def start(self, target: str, on_complete: CompletionCallback) -> asyncio.Task[BuildResult]:
        """Schedule :meth:`run` without waiting for it.

        The trigger keeps a reference to the task until it finishes.
        """
        task = asyncio.create_task(self.run(target, on_complete))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    @property
    def running(self) -> int:
        """Number of builds currently in flight."""
        return len(self._tasks)

    async def wait(self) -> None:
        """Wait for every in-flight build (shutdown and tests)."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)


__all__ = ["BuildTrigger", "CompletionCallback", "Spawner"]
