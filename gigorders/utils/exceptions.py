class ServiceError(Exception):
    code = "SERVICE_ERROR"
    status = 400

    def __init__(self, message="Service error", code=None, details=None):
        self.code = code or self.code
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ValidationError(ServiceError):
    """Malformed or out-of-enum input. The caller has to fix the request."""

    code = "VALIDATION_ERROR"
    status = 422


class NotFoundError(ServiceError):
    code = "NOT_FOUND"
    status = 404

    def __init__(self, resource, resource_id=None):
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource} not found"
        if resource_id is not None:
            msg = f"{resource} {resource_id} not found"
        super().__init__(msg, details={"resource": resource, "id": resource_id})


class AuthorizationError(ServiceError):
    code = "FORBIDDEN"
    status = 403
