"""
Typed errors raised by the requirement workflow.

Every error carries the HTTP status it maps to so the API layer can render
it without inspecting messages:

    ProcurementError (base, 500)
    +-- ValidationError       400  missing or malformed fields
    +-- AuthenticationError   403  missing or invalid bearer token
    +-- AuthorizationError    403  authenticated but not permitted
    +-- NotFoundError         404  id does not resolve
    +-- InvalidStateError     400  action not allowed in the current status
    +-- ConflictError         409  concurrent status write lost the race
    +-- DependencyError       500  store or identity provider failure
"""


class ProcurementError(Exception):
    status_code = 500
    code = "PROCUREMENT_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ProcurementError):
    status_code = 400
    code = "VALIDATION_ERROR"


class AuthenticationError(ProcurementError):
    status_code = 403
    code = "AUTHENTICATION_ERROR"


class AuthorizationError(ProcurementError):
    status_code = 403
    code = "AUTHORIZATION_ERROR"


class NotFoundError(ProcurementError):
    status_code = 404
    code = "NOT_FOUND"


class InvalidStateError(ProcurementError):
    status_code = 400
    code = "INVALID_STATE"

    def __init__(self, message: str, current_status=None):
        super().__init__(message)
        self.current_status = current_status


class ConflictError(ProcurementError):
    status_code = 409
    code = "CONFLICT"


class DependencyError(ProcurementError):
    status_code = 500
    code = "DEPENDENCY_ERROR"
