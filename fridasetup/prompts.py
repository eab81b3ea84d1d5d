"""Interactive prompts that degrade to defaults in automated runs."""

from __future__ import annotations

import logging
import sys
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class Prompter:
    """
    Asks the user a question, or answers it with the default.

    Non-interactive runs (``interactive=False``, no TTY on stdin, or EOF
    while reading) never block.
    """

    def __init__(
        self,
        interactive: Optional[bool] = None,
        input_func: Callable[[str], str] = input,
    ):
        if interactive is None:
            interactive = sys.stdin is not None and sys.stdin.isatty()
        self.interactive = interactive
        self.input_func = input_func

    def ask(self, question: str, default: str = "") -> str:
        if not self.interactive:
            logger.debug("Non-interactive, answering %r with %r", question, default)
            return default
        try:
            answer = self.input_func(question)
        except EOFError:
            return default
        answer = answer.strip()
        return answer or default

    def confirm(self, question: str, default: bool = False) -> bool:
        answer = self.ask(question, "y" if default else "n")
        return answer.lower() in ("y", "yes")
