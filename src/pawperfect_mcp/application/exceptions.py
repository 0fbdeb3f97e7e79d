from __future__ import annotations


class AppError(Exception):
    """Base application error."""

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(detail)


class NotFoundError(AppError):
    pass


class ForbiddenError(AppError):
    pass


class ValidationError(AppError):
    pass


class TransportError(AppError):
    """The persistent connection or a one-shot call could not carry the request."""


class RequestTimeoutError(TransportError):
    pass


class AuthorizationError(AppError):
    pass


class OperationError(AppError):
    """The server answered an operation with ``success: false``."""


class DeliveryError(AppError):
    pass


class ProtocolError(AppError):
    """An inbound frame could not be parsed."""
