"""
Error taxonomy for KTV Request Hub.

Validation errors (Unauthenticated, Forbidden, InvalidState) are raised before
any store call. BackendUnavailable wraps store failures and is never retried here.
"""


class KtvError(Exception):
    """Base class for every error surfaced to callers."""

    status_code = 500

    def __init__(self, message, *args):
        super().__init__(message, *args)
        self.message = message

    def to_dict(self):
        return {"error": self.message, "kind": type(self).__name__}


class Unauthenticated(KtvError):
    status_code = 401

    def __init__(self, message="Login required"):
        super().__init__(message)


class Forbidden(KtvError):
    status_code = 403


class NotFound(KtvError):
    status_code = 404

    def __init__(self, entity_type, entity_id):
        super().__init__(f"{entity_type} {entity_id} not found")
        self.entity_type = entity_type
        self.entity_id = entity_id


class InvalidState(KtvError):
    status_code = 409


class ValidationFailed(KtvError):
    """Malformed input at the HTTP boundary (missing fields, bad values)."""

    status_code = 400


class BackendUnavailable(KtvError):
    status_code = 503
