from rest_framework.authentication import SessionAuthentication


class PortalSessionAuthentication(SessionAuthentication):
    """Authenticate from the backend token kept in the portal's session.

    ``request.user`` becomes the ``SessionContext``; CSRF is enforced for
    signed-in callers exactly as DRF does for Django sessions.
    """

    def authenticate(self, request):
        # Imported here: portal.session loads DRF views, which load this module
        # through DEFAULT_AUTHENTICATION_CLASSES.
        from .session import SessionContext

        session = SessionContext.from_request(request._request)
        if not session.is_authenticated:
            return None

        self.enforce_csrf(request)
        return (session, session.token)
