"""Debounced remote-search selector for a single stakeholder field."""

__version__ = "0.3.0"

from .models import StakeholderRef, coerce_stakeholder
from .selector import StakeholderSelector, SelectorClosedError

__all__ = [
    "StakeholderRef",
    "StakeholderSelector",
    "SelectorClosedError",
    "coerce_stakeholder",
    "__version__",
]
