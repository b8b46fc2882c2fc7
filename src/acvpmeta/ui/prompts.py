"""Interactive confirmation on the terminal."""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

from acvpmeta.domain.ports.decisions import Decision

if TYPE_CHECKING:
    from collections.abc import Callable

    from acvpmeta.domain.ports.decisions import Question

_YES = frozenset({"y", "yes"})
_NO = frozenset({"n", "no"})

# Workflows run in parallel threads but share one terminal.
_PROMPT_LOCK = threading.Lock()


class InteractivePolicy:
    def __init__(self, *, input_func: Callable[[str], str] = input) -> None:
        self._input = input_func

    def decide(self, question: Question) -> Decision:
        hint = "[Y/n]" if question.default is Decision.PROCEED else "[y/N]"
        prompt = (
            f"[{question.record_key}] {question.prompt} "
            f"({question.verb} {question.kind})? {hint} "
        )
        with _PROMPT_LOCK:
            while True:
                try:
                    answer = self._input(prompt).strip().lower()
                except EOFError:
                    return Decision.ABORT
                if not answer:
                    return question.default
                if answer in _YES:
                    return Decision.PROCEED
                if answer in _NO:
                    return Decision.ABORT
