"""
Error types raised by the ATHENA engine.

Only malformed input is an error. Insufficient data is a normal evaluated
state (a GateStatus with its booleans false) and below-cohort cross-account
groups are suppressed silently, so neither has an exception type.
"""

from typing import Any, Dict, List, Optional


class InvalidInputError(ValueError):
    """
    A snapshot or outcome record failed validation at the boundary.

    Negative counts, fractions outside [0, 1] and similar defects are rejected
    rather than clamped, since clamping would change gate results.

    Attributes:
        errors: Field-level error details, when available.
    """

    def __init__(self, message: str, errors: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message)
        self.errors = errors or []
