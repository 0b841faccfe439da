# marketplace/core/errors.py
"""
Domain error taxonomy.

Every error is an HTTPException so services can raise it directly and
FastAPI renders it as {"detail": "<message>"} with the matching status.
"""
from fastapi import HTTPException, status


class InvalidRequest(HTTPException):
    """Malformed or empty input."""

    def __init__(self, detail: str = "Invalid request"):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class InsufficientStock(HTTPException):
    """Requested quantity exceeds the product's stock_on_hand."""

    def __init__(self, detail: str = "Not enough stock available"):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class AlreadyReviewed(HTTPException):
    def __init__(self, detail: str = "Product already reviewed"):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class Unauthorized(HTTPException):
    """Missing credentials, or a role / ownership mismatch."""

    def __init__(self, detail: str = "Not authorized"):
        super().__init__(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


class NotFound(HTTPException):
    def __init__(self, detail: str = "Not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)
