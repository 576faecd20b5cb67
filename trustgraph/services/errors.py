class ServiceError(Exception):
    """Business-rule violation raised by services and turned into an API error by the routes."""
    status = 400
    code = None

    def __init__(self, message, status=None, code=None, extra=None):
        super().__init__(message)
        self.message = message
        if status is not None:
            self.status = status
        if code is not None:
            self.code = code
        self.extra = extra or {}


class NotAuthenticated(ServiceError):
    status = 401


class NotAuthorised(ServiceError):
    status = 403


class NotFound(ServiceError):
    status = 404


class Conflict(ServiceError):
    status = 409


class PlanLimitReached(ServiceError):
    status = 403
    code = 'PLAN_CAP_REACHED'
