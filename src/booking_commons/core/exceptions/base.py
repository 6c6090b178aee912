"""Root of the booking-commons error hierarchy.

Permission checks, role administration and storage adapters all raise
subclasses of ``BookingCommonsError``; callers translate them to HTTP
through ``http_mapping``.
"""

from typing import Any, Dict, Optional


class BookingCommonsError(Exception):
    """Error carrying a machine-readable code and structured details.

    ``error_code`` defaults to the class name, so ``ForbiddenError`` is
    reported as ``"ForbiddenError"`` unless a code is given.
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or type(self).__name__
        self.details = details or {}
