# path: territory-engine/territory_engine/services/errors.py

from __future__ import annotations

from typing import List, Optional


class ClaimError(Exception):
    """Base for claim failures reported back to the caller."""

    status_code = 400

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.message = message
        self.errors = errors


class ClaimValidationError(ClaimError):
    """The run failed plausibility checks; ``errors`` lists every broken rule."""


class ClaimRejectedError(ClaimError):
    """Every contested territory turned the attack away."""

    def __init__(self, message: str, status_code: int = 400, errors: Optional[List[str]] = None):
        super().__init__(message, errors)
        self.status_code = status_code


class TerritoryConflictError(ClaimError):
    status_code = 409

    def __init__(self, territory_id: str):
        super().__init__("Territory changed, try again")
        self.territory_id = territory_id
