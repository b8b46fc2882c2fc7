"""Non-interactive decision policy."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from acvpmeta.domain.ports.decisions import Decision

if TYPE_CHECKING:
    from acvpmeta.domain.ports.decisions import Question

log = getLogger(__name__)


class AutoApprovePolicy:
    """Accept every submission; the payload has already been logged."""

    def decide(self, question: Question) -> Decision:
        log.info(
            "%s? yes (%s %s of %s)",
            question.prompt,
            question.verb,
            question.kind,
            question.record_key,
        )
        return Decision.PROCEED
