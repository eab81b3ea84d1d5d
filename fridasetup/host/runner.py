"""
Command Runner

Executes host processes and reports the outcome as a value. A nonzero
exit status, a missing executable or a timeout never raises.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional

logger = logging.getLogger(__name__)

MISSING_EXECUTABLE = 127


@dataclass
class CommandResult:
    """Result from command execution."""

    command: list[str]
    stdout: str = ""
    stderr: str = ""
    return_code: int = 0
    duration_ms: Optional[float] = None

    @property
    def success(self) -> bool:
        return self.return_code == 0

    @property
    def output(self) -> str:
        """Combined stdout + stderr."""
        return self.stdout + ("\n" + self.stderr if self.stderr else "")


class CommandRunner(ABC):
    """Abstract base class for command runners."""

    @abstractmethod
    def run(
        self,
        command: list[str],
        timeout: Optional[float] = None,
        env: Optional[dict] = None,
        cwd: Optional[str] = None,
    ) -> CommandResult:
        """Execute a command and return its result."""

    @abstractmethod
    def which(self, name: str) -> Optional[str]:
        """Resolve an executable on PATH."""

    @abstractmethod
    def spawn(self, command: list[str]) -> None:
        """Start a detached background process without waiting for it."""


@dataclass
class LocalRunner(CommandRunner):
    """Run commands on this host via subprocess."""

    extra_env: dict = field(default_factory=dict)
    processes: list = field(default_factory=list, repr=False)

    def _environment(self, env: Optional[dict]) -> Optional[dict]:
        if not env and not self.extra_env:
            return None
        merged = dict(os.environ)
        merged.update(self.extra_env)
        merged.update(env or {})
        return merged

    def run(
        self,
        command: list[str],
        timeout: Optional[float] = None,
        env: Optional[dict] = None,
        cwd: Optional[str] = None,
    ) -> CommandResult:
        logger.debug("Running: %s", " ".join(command))
        start = time.time()

        try:
            result = subprocess.run(
                command,
                capture_output=True,
                text=True,
                timeout=timeout,
                env=self._environment(env),
                cwd=cwd,
            )
        except FileNotFoundError as e:
            return CommandResult(
                command=command,
                stderr=str(e),
                return_code=MISSING_EXECUTABLE,
            )
        except subprocess.TimeoutExpired:
            return CommandResult(
                command=command,
                stderr=f"Command timed out after {timeout}s",
                return_code=-1,
            )
        except OSError as e:
            return CommandResult(command=command, stderr=str(e), return_code=-1)

        duration = (time.time() - start) * 1000
        if result.returncode != 0:
            logger.debug("Exit %d: %s", result.returncode, result.stderr.strip())

        return CommandResult(
            command=command,
            stdout=result.stdout,
            stderr=result.stderr,
            return_code=result.returncode,
            duration_ms=duration,
        )

    def which(self, name: str) -> Optional[str]:
        return shutil.which(name)

    def spawn(self, command: list[str]) -> None:
        logger.debug("Spawning: %s", " ".join(command))
        self.reap()
        try:
            process = subprocess.Popen(
                command,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=os.name != "nt",
                env=self._environment(None),
            )
        except OSError as e:
            logger.warning("Could not start %s: %s", command[0], e)
            return
        self.processes.append(process)

    def reap(self) -> None:
        """Collect the exit status of spawned processes that have finished."""
        self.processes = [p for p in self.processes if p.poll() is None]
