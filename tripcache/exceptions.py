"""
HTTP-facing exceptions for the debug server
"""

from fastapi import HTTPException, status


class ValidationError(HTTPException):
    """Invalid event or payload"""

    def __init__(self, detail: str = "Validation error"):
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=detail
        )


class NotFoundError(HTTPException):
    """Unknown namespace or key"""

    def __init__(self, detail: str = "Resource not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)
