from __future__ import annotations


class VendorTalError(Exception):
    """Base exception with user-friendly message."""
    pass


class ConfigError(VendorTalError):
    pass


class ApiError(VendorTalError):
    pass


class AuthenticationError(ApiError):
    pass


class NotFoundError(ApiError):
    pass


class ValidationError(VendorTalError):
    pass


class InvalidTransitionError(ValidationError):
    pass
