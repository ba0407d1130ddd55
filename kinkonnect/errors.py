"""Exception types raised by discovery, the record store and graph mutations."""


class KinkonnectError(Exception):
    """Base class for every error this package raises on purpose."""

    code = "internal"

    def to_dict(self) -> dict:
        return {"error": str(self), "code": self.code}


class UnauthenticatedError(KinkonnectError):
    code = "unauthenticated"

    def __init__(self, message: str = "The operation must be called while authenticated."):
        super().__init__(message)


class InvalidArgumentError(KinkonnectError):
    code = "invalid-argument"


class PreconditionError(KinkonnectError):
    """The caller's data does not satisfy what the operation needs.

    `missing_fields` names the profile fields that must be filled in.
    """

    code = "failed-precondition"

    def __init__(self, message: str, missing_fields: tuple[str, ...] = ()):
        super().__init__(message)
        self.missing_fields = missing_fields


class NotFoundError(KinkonnectError):
    code = "not-found"

    def __init__(self, message: str, record_id: str | None = None):
        super().__init__(message)
        self.record_id = record_id


class ScanTimeoutError(KinkonnectError):
    code = "deadline-exceeded"

    def __init__(self, message: str | None = None):
        super().__init__(
            message
            or "The search took too long and timed out. This can happen if there are many "
            "users or very large family trees. Try a narrower filter or try again later."
        )


class InternalError(KinkonnectError):
    code = "internal"

    def __init__(self, message: str, caller_id: str | None = None):
        if caller_id:
            message = f"{message} Reference UID: {caller_id}."
        super().__init__(message)
        self.caller_id = caller_id


class StoreError(KinkonnectError):
    code = "unavailable"


class DescriberError(KinkonnectError):
    code = "unavailable"


class PermissionDeniedError(KinkonnectError):
    """The caller may not view or change another user's tree."""

    code = "permission-denied"
