from __future__ import annotations

import pytest

from acvpmeta.domain.ports.decisions import Decision, Question
from acvpmeta.domain.types import EntityKind, HttpVerb
from acvpmeta.ui.prompts import InteractivePolicy

QUESTION = Question(
    kind=EntityKind.OE,
    verb=HttpVerb.PUT,
    prompt="Shall the server entry be UPDATED",
    record_key="oe:linux-skylake",
)


def _scripted(*answers: str) -> tuple[list[str], InteractivePolicy]:
    prompts: list[str] = []
    remaining = list(answers)

    def fake_input(prompt: str) -> str:
        prompts.append(prompt)
        if not remaining:
            raise EOFError
        return remaining.pop(0)

    return prompts, InteractivePolicy(input_func=fake_input)


@pytest.mark.parametrize(
    ("answer", "decision"),
    [
        ("y", Decision.PROCEED),
        ("YES ", Decision.PROCEED),
        ("n", Decision.ABORT),
        ("", Decision.PROCEED),
    ],
)
def test_answers_map_to_decisions(answer: str, decision: Decision) -> None:
    _, policy = _scripted(answer)

    assert policy.decide(QUESTION) is decision


def test_prompt_names_record_and_request() -> None:
    prompts, policy = _scripted("y")

    policy.decide(QUESTION)

    assert prompts == [
        "[oe:linux-skylake] Shall the server entry be UPDATED (PUT oe)? [Y/n] "
    ]


def test_unclear_answers_are_asked_again() -> None:
    prompts, policy = _scripted("maybe", "no")

    assert policy.decide(QUESTION) is Decision.ABORT
    assert len(prompts) == 2


def test_closed_input_declines() -> None:
    _, policy = _scripted()

    assert policy.decide(QUESTION) is Decision.ABORT


def test_default_no_changes_hint() -> None:
    prompts, policy = _scripted("")
    question = Question(
        kind=EntityKind.SOFTWARE,
        verb=HttpVerb.DELETE,
        prompt="Shall the server entry be DELETED",
        record_key="oe:x",
        default=Decision.ABORT,
    )

    assert policy.decide(question) is Decision.ABORT
    assert prompts[0].endswith("[y/N] ")
