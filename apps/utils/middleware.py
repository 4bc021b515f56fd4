# utils/middleware.py

import logging
from utils.context import set_acting_identity, clear_acting_identity

logger = logging.getLogger(__name__)

ACTING_IDENTITY_HEADER = 'HTTP_X_ACTING_IDENTITY'


class ActingIdentityMiddleware:
    """
    Middleware that attaches the caller's identity to the thread for audit fields.

    The identity comes from an authenticated ``request.user`` when an auth
    layer set one, otherwise from the ``X-Acting-Identity`` header.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        set_acting_identity(
            actor_id=self._get_actor_id(request),
            source=request.path,
        )

        try:
            response = self.get_response(request)
        finally:
            # Always clear context after request
            clear_acting_identity()

        return response

    def _get_actor_id(self, request):
        user = getattr(request, 'user', None)
        if user is not None and getattr(user, 'is_authenticated', False):
            return str(user.pk)

        header_value = request.META.get(ACTING_IDENTITY_HEADER, '').strip()
        return header_value or None
