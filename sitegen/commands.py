"""External commands declared in source metadata.

A pass-through source may name a shell command instead of being copied:
``build: npm run prod`` runs in a single-run build, ``serve: npm run dev``
runs in dev mode. Build commands run to completion; serve commands are
spawned and tracked so the watcher can wait for them before it announces an
update.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
import threading
from pathlib import Path

logger = logging.getLogger(__name__)


class CommandRunner:
    """Runs metadata commands from the site root.

    Attributes:
        cwd: Working directory for every command.
    """

    def __init__(self, cwd: Path):
        self.cwd = cwd
        self._lock = threading.Lock()
        self._running: list[subprocess.Popen] = []

    def run(self, command: str) -> int:
        """Run ``command`` to completion and log its output.

        Returns:
            The exit status, or -1 when the command could not be started.
        """
        args = shlex.split(command)
        if not args:
            return 0
        try:
            result = subprocess.run(
                args, cwd=self.cwd, capture_output=True, text=True
            )
        except OSError as exc:
            logger.error("Command %r failed to start: %s", command, exc)
            return -1
        if result.returncode != 0:
            logger.error(
                "Command %r exited with %d: %s",
                command,
                result.returncode,
                result.stderr.strip(),
            )
        else:
            logger.info("%s", result.stdout.strip() or command)
        return result.returncode

    def spawn(self, command: str) -> subprocess.Popen | None:
        """Start ``command`` without waiting for it; ``wait()`` joins it later."""
        args = shlex.split(command)
        if not args:
            return None
        try:
            process = subprocess.Popen(args, cwd=self.cwd)
        except OSError as exc:
            logger.error("Command %r failed to start: %s", command, exc)
            return None
        logger.info("Started %r (pid %d)", command, process.pid)
        with self._lock:
            self._running.append(process)
        return process

    def wait(self) -> None:
        """Block until every spawned command has exited.

        Safe to call from several threads at once; a process leaves the
        running list only after it has been waited on.
        """
        while True:
            with self._lock:
                running = list(self._running)
            if not running:
                return
            for process in running:
                status = process.wait()
                with self._lock:
                    if process not in self._running:
                        continue
                    self._running.remove(process)
                if status != 0:
                    logger.error("Command %r exited with %d", process.args, status)

    @property
    def pending(self) -> int:
        with self._lock:
            return len(self._running)
