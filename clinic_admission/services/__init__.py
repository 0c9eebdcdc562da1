from .business_rules import ClinicPolicy, evaluate, generate_time_slots
from .conflicts import ConflictChecker
from .status_transitions import (
    StatusTransitionGuard,
    TransitionContext,
    available_actions,
    can_transition,
)
from .admission import AdmissionOutcome, AdmissionService

__all__ = [
    "ClinicPolicy", "evaluate", "generate_time_slots",
    "ConflictChecker",
    "StatusTransitionGuard", "TransitionContext", "available_actions", "can_transition",
    "AdmissionOutcome", "AdmissionService",
]
