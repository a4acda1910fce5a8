class ServiceError(ValueError):
    """Base class for errors raised by the service layer."""


class InvalidFormat(ServiceError):
    pass


class NotFound(ServiceError):
    pass


class Conflict(ServiceError):
    pass


class Unauthorized(ServiceError):
    pass


class Forbidden(ServiceError):
    pass
