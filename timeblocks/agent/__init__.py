"""
Action interpretation: tolerant normalization + application onto time blocks
"""

from .schemas import CanonicalAction, dump_actions
from .normalizer import normalize_action, normalize_actions
from .applier import apply_action, apply_actions

__all__ = [
    "CanonicalAction",
    "dump_actions",
    "normalize_action",
    "normalize_actions",
    "apply_action",
    "apply_actions",
]
