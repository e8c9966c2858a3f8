class PortalError(Exception):
    """Base class for failures surfaced by the booking workflow."""

    default_message = "Something went wrong."
    status_code = 500

    def __init__(self, message=None, *, status_code=None, detail=None):
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        self.detail = detail
        super().__init__(self.message)

    def as_dict(self):
        body = {"error": self.message}
        if self.detail:
            body["detail"] = self.detail
        return body


class ValidationFailure(PortalError):
    """The action was blocked before any network call; the visitor can fix it."""

    default_message = "Invalid request."
    status_code = 400


class AuthorizationFailure(PortalError):
    """The session is missing, expired or was rejected by the backend."""

    default_message = "Your session has expired. Please sign in again."
    status_code = 401


class RemoteFailure(PortalError):
    default_message = "The booking service could not complete the request."
    status_code = 502


class CheckoutUnavailable(RemoteFailure):
    default_message = "Could not load the checkout. Please try again."


class NotFound(PortalError):
    default_message = "Not found."
    status_code = 404
