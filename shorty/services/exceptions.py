"""Exceptions for the link shortener service layer.

Each exception maps onto one class of the error taxonomy the HTTP layer
translates into a status code: invalid input (400), conflict (409), not
found (404) and generation exhaustion (503). Side-effect failures never
surface as exceptions; they are logged where they happen.
"""

from typing import List, Optional


class ServiceError(Exception):
    """Base exception for all service-level errors."""
    pass


class InvalidInputError(ServiceError):
    """Client input failed validation; ``errors`` itemizes the reasons."""

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        self.message = message
        self.errors = list(errors) if errors else [message]
        super().__init__(message)


class InvalidURLError(InvalidInputError):
    """The destination URL is malformed or unsafe."""

    def __init__(self, errors: List[str]):
        super().__init__("Invalid URL", errors)


class CustomSlugValidationError(InvalidInputError):
    """The requested custom slug doesn't meet requirements."""

    def __init__(self, errors: List[str]):
        super().__init__("Invalid custom slug", errors)


class InvalidPaginationError(InvalidInputError):
    """Page or limit out of range."""
    pass


class ConflictError(ServiceError):
    """The request conflicts with existing state."""
    pass


class SlugAlreadyExistsError(ConflictError):
    """The requested custom slug is already in use."""

    def __init__(self, slug: str):
        self.slug = slug
        super().__init__(f"Short code '{slug}' is already in use")


class LinkNotFoundError(ServiceError):
    """No link matches the given id or code."""
    pass


class SlugGenerationError(ServiceError):
    """Every slug candidate collided; the caller may retry later."""

    def __init__(self, attempts: int, reason: Optional[str] = None):
        self.attempts = attempts
        super().__init__(f"Failed to generate a unique short code after {attempts} attempts: {reason}")
