# backend/propdesk/domain/compliance/__init__.py
from .status import evaluate, DEFAULT_DUE_SOON_WINDOW_DAYS
from .ppm_resolver import NewJobRequest, ResolutionPass, governing_schedule, is_due, resolve, scope_matches

__all__ = [
    "DEFAULT_DUE_SOON_WINDOW_DAYS",
    "NewJobRequest",
    "ResolutionPass",
    "evaluate",
    "governing_schedule",
    "is_due",
    "resolve",
    "scope_matches",
]
