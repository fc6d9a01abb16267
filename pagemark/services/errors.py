"""Domain errors raised by the service layer.

Routes never build error responses for these by hand: the API blueprint renders
any :class:`ServiceError` as ``{"error": message}`` with its status code.
"""


class ServiceError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class Unauthorized(ServiceError):
    status_code = 401


class Forbidden(ServiceError):
    status_code = 403


class NotFound(ServiceError):
    status_code = 404


class InvalidArgument(ServiceError):
    status_code = 400


class Conflict(ServiceError):
    status_code = 409


class TransactionFailure(ServiceError):
    status_code = 500
