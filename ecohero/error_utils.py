"""
Standardized error handling for the EcoHero progress engine.
Provides a single table of error codes and the exception types raised when a
caller violates an operation's contract.
"""

import logging
from typing import Any, Dict, Optional

# Standard error codes for consistent error reporting
ERROR_CODES = {
    # Contract violations
    "INVALID_ACTIVITY": "Activity impact metrics must be non-negative",
    "INVALID_PROGRESS": "Progress amount must be a finite, non-negative number",
    "OWNERSHIP_MISMATCH": "Activity does not belong to this profile",
    "INVALID_CHALLENGE_STATE": "Challenge cannot make this transition from its current status",

    # Resource errors
    "NOT_FOUND": "Resource not found",

    # System errors
    "STORE_ERROR": "Entity store operation failed",
    "LOCK_NOT_ACQUIRED": "Another worker is updating this profile",
    "SERVER_ERROR": "Internal error",
}


class EcoHeroError(Exception):
    """Base error carrying one of the standard ERROR_CODES."""

    error_code = "SERVER_ERROR"

    def __init__(self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        if self.error_code not in ERROR_CODES:
            logging.warning(f"Unknown error code used: {self.error_code}")
        self.message = message or ERROR_CODES.get(self.error_code, ERROR_CODES["SERVER_ERROR"])
        self.details = details or {}
        super().__init__(self.message)
        logging.error(f"Progress Engine Error [{self.error_code}]: {self.message}")

    def to_dict(self) -> Dict[str, Any]:
        data = {"error_code": self.error_code, "message": self.message}
        if self.details:
            data["details"] = self.details
        return data


class InvalidActivityError(EcoHeroError, ValueError):
    error_code = "INVALID_ACTIVITY"


class InvalidProgressError(EcoHeroError, ValueError):
    error_code = "INVALID_PROGRESS"


class OwnershipError(EcoHeroError, ValueError):
    error_code = "OWNERSHIP_MISMATCH"


class ChallengeStateError(EcoHeroError):
    error_code = "INVALID_CHALLENGE_STATE"


class NotFoundError(EcoHeroError, LookupError):
    error_code = "NOT_FOUND"


class StoreError(EcoHeroError):
    error_code = "STORE_ERROR"


class LockNotAcquiredError(EcoHeroError):
    error_code = "LOCK_NOT_ACQUIRED"


def handle_exception(e: Exception, context: str = "progress engine") -> Dict[str, Any]:
    """
    Convert any exception into the standard error payload.

    Args:
        e: The exception that occurred
        context: Context information for logging

    Returns:
        Dict with error_code, message and optional details
    """
    if isinstance(e, EcoHeroError):
        return e.to_dict()

    error_type = type(e).__name__
    logging.error(f"Unexpected error in {context}: {error_type} - {e}", exc_info=True)
    return {
        "error_code": "SERVER_ERROR",
        "message": "An unexpected error occurred",
        "details": {"error_type": error_type, "error_message": str(e)},
    }
