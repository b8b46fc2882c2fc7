"""Reconciliation of operational environments and their dependencies.

Each entity kind is a build/match pair (``dependencies``, ``environment``);
the engine validates, decides and submits, the resolver follows up on
outstanding requests and the workflow sequences them under the record lock.
"""

from __future__ import annotations

from .contracts import MatchResult, Outcome, ValidationResult
from .dependencies import PROCESSOR, SOFTWARE
from .engine import ReconciliationEngine
from .environment import OE, generate_oe_name, software_consistent
from .pending import PendingRequestResolver
from .policy import AutoApprovePolicy
from .workflow import OperationalEnvironmentWorkflow, WorkflowReport

__all__ = [
    "OE",
    "PROCESSOR",
    "SOFTWARE",
    "AutoApprovePolicy",
    "MatchResult",
    "OperationalEnvironmentWorkflow",
    "Outcome",
    "PendingRequestResolver",
    "ReconciliationEngine",
    "ValidationResult",
    "WorkflowReport",
    "generate_oe_name",
    "software_consistent",
]
