import logging

from adrf.views import APIView
from django.conf import settings
from django.http import HttpResponseRedirect
from rest_framework import exceptions
from rest_framework.response import Response

from .exceptions import AuthorizationFailure, PortalError

logger = logging.getLogger(__name__)

SESSION_KEY = 'portal_auth'

VISITOR = 'Visitor'
OWNER = 'Owner'


class SessionContext:
    """Token and role of the signed-in user, passed explicitly to every component.

    ``on_clear`` is called when the session is invalidated, so the backing
    store (the Django session for web requests) is wiped along with it.
    """

    def __init__(self, token=None, role=None, name='', user_id=None, on_clear=None):
        self.token = token
        self.role = role
        self.name = name or ''
        self.user_id = user_id
        self._on_clear = on_clear

    @classmethod
    def from_request(cls, request):
        data = request.session.get(SESSION_KEY) or {}
        return cls(
            token=data.get('token'),
            role=data.get('role'),
            name=data.get('name'),
            user_id=data.get('user_id'),
            on_clear=request.session.flush,
        )

    def store(self, request):
        request.session[SESSION_KEY] = {
            'token': self.token,
            'role': self.role,
            'name': self.name,
            'user_id': self.user_id,
        }
        self._on_clear = request.session.flush

    @property
    def is_authenticated(self):
        return bool(self.token)

    @property
    def is_visitor(self):
        return self.is_authenticated and self.role == VISITOR

    @property
    def is_owner(self):
        return self.is_authenticated and self.role == OWNER

    @property
    def identity(self):
        """Stable key for the signed-in user: the backend user id, else the token."""
        if not self.is_authenticated:
            return None
        return str(self.user_id) if self.user_id else self.token

    def auth_headers(self):
        if not self.token:
            return {}
        return {'Authorization': f'Bearer {self.token}'}

    def clear(self):
        self.token = None
        self.role = None
        self.name = ''
        self.user_id = None
        if self._on_clear is not None:
            self._on_clear()

    def __repr__(self):
        return f'<SessionContext role={self.role!r} authenticated={self.is_authenticated}>'


def login_redirect():
    return HttpResponseRedirect(settings.LOGIN_URL)


class SessionGuardView(APIView):
    """Async API view whose handlers run behind the session guard.

    Handlers receive the DRF request; ``get_session`` hands them the
    ``SessionContext`` to pass on to the backend client. Any
    ``AuthorizationFailure`` raised while a handler runs, or an anonymous
    caller on a role-restricted view, flushes the session and redirects to
    the login page, whatever else the view was doing. Other portal errors
    become a JSON error body.
    """

    def get_session(self, request):
        if isinstance(request.user, SessionContext):
            return request.user
        return SessionContext.from_request(request._request)

    def handle_exception(self, exc):
        if isinstance(exc, (AuthorizationFailure, exceptions.NotAuthenticated)):
            logger.info("Session rejected, signing out", extra={'path': self.request.path})
            self.request.session.flush()
            return login_redirect()
        if isinstance(exc, PortalError):
            return Response(exc.as_dict(), status=exc.status_code)
        return super().handle_exception(exc)
