"""Pytest fixtures for frida-setup tests."""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Callable, Optional, Union

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from fridasetup.exceptions import DownloadError
from fridasetup.host.platform import LinuxAdapter, WindowsAdapter
from fridasetup.host.runner import CommandResult, CommandRunner
from fridasetup.prompts import Prompter

Response = Union[int, tuple, CommandResult, Callable[[list[str]], CommandResult]]

LINUX_PACKAGE_MANAGERS = ["apt-get", "dnf", "yum", "pacman", "zypper", "apk"]


class FakeRunner(CommandRunner):
    """
    Mock command runner.

    ``responses`` maps a command-line prefix to an exit code, a
    ``(code, stdout, stderr)`` tuple, a CommandResult, or a callable taking
    the command. The longest matching prefix wins.
    """

    def __init__(
        self,
        responses: Optional[dict] = None,
        default_code: int = 0,
        paths: Optional[dict] = None,
    ) -> None:
        self.responses: dict = dict(responses or {})
        self.default_code = default_code
        self.paths = paths or {}
        self.commands: list[list[str]] = []
        self.spawned: list[list[str]] = []

    def respond(self, prefix: str, response: Response) -> None:
        self.responses[prefix] = response

    def run(self, command, timeout=None, env=None, cwd=None) -> CommandResult:
        command = [str(c) for c in command]
        self.commands.append(command)
        line = " ".join(command)

        for prefix in sorted(self.responses, key=len, reverse=True):
            if line.startswith(prefix):
                response = self.responses[prefix]
                if callable(response):
                    response = response(command)
                if isinstance(response, CommandResult):
                    return response
                if isinstance(response, int):
                    return CommandResult(command=command, return_code=response)
                code, stdout, stderr = response
                return CommandResult(command=command, stdout=stdout, stderr=stderr, return_code=code)

        return CommandResult(command=command, return_code=self.default_code)

    def which(self, name: str) -> Optional[str]:
        return self.paths.get(name)

    def spawn(self, command) -> None:
        self.spawned.append([str(c) for c in command])

    def lines(self) -> list[str]:
        return [" ".join(c) for c in self.commands]

    def ran(self, prefix: str) -> bool:
        return any(line.startswith(prefix) for line in self.lines())


class FakeDownloader:
    """Mock downloader that writes canned bytes instead of fetching."""

    def __init__(self, content: bytes = b"payload", fail: Optional[set] = None) -> None:
        self.content = content
        self.fail = fail or set()
        self.urls: list[str] = []

    def fetch(self, url: str, dest: Path) -> Path:
        self.urls.append(url)
        if url in self.fail or "*" in self.fail:
            raise DownloadError(url, cause=RuntimeError("404 Not Found"))
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(self.content)
        return dest


def xz_extractor(content: bytes = b"\x7fELF-server") -> Callable[[list[str]], CommandResult]:
    """A runner response that behaves like ``xz -d -k <archive>``."""

    def extract(command: list[str]) -> CommandResult:
        archive = Path(command[-1])
        archive.with_suffix("").write_bytes(content)
        return CommandResult(command=command, return_code=0)

    return extract


def adb_devices(*serials: str) -> tuple:
    lines = ["List of devices attached"] + [f"{s}\tdevice" for s in serials]
    return 0, "\n".join(lines) + "\n", ""


@pytest.fixture
def home(tmp_path) -> Path:
    path = tmp_path / "home"
    path.mkdir()
    return path


@pytest.fixture
def linux(home) -> LinuxAdapter:
    return LinuxAdapter(home=home, environ={"SHELL": "/bin/bash"}, use_sudo=False)


@pytest.fixture
def windows(home) -> WindowsAdapter:
    return WindowsAdapter(home=home, environ={})


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def downloader() -> FakeDownloader:
    return FakeDownloader()


@pytest.fixture
def scripted_prompter() -> Callable[..., Prompter]:
    """Build an interactive Prompter that replays the given answers."""

    def build(*answers: str) -> Prompter:
        queue = list(answers)

        def answer(question: str) -> str:
            if not queue:
                raise EOFError
            return queue.pop(0)

        return Prompter(interactive=True, input_func=answer)

    return build
