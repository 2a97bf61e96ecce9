import logging
from urllib.parse import parse_qs

from channels.db import database_sync_to_async
from channels.middleware import BaseMiddleware
from django.contrib.auth.models import AnonymousUser

from .auth import token_from_header, user_for_token
from .errors import NotAuthenticated

logger = logging.getLogger(__name__)


class BearerTokenMiddleware:
    """
    Sets `request.user` from an `Authorization: Bearer <token>` header.
    Add after AuthenticationMiddleware. A bad token leaves the request
    anonymous and records the reason in `request.auth_error`.
    """
    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        request.auth_error = None
        token = token_from_header(request.META.get("HTTP_AUTHORIZATION", ""))
        if token is not None:
            try:
                request.user = user_for_token(token)
            except NotAuthenticated as exc:
                request.user = AnonymousUser()
                request.auth_error = exc.message
        return self.get_response(request)


def token_from_scope(scope):
    query = parse_qs(scope.get("query_string", b"").decode())
    if query.get("token"):
        return query["token"][0]
    for name, value in scope.get("headers", []):
        if name == b"authorization":
            return token_from_header(value.decode())
    return None


@database_sync_to_async
def resolve_user(token):
    try:
        return user_for_token(token), None
    except NotAuthenticated as exc:
        return AnonymousUser(), exc.message


class TokenAuthMiddleware(BaseMiddleware):
    """Websocket counterpart of BearerTokenMiddleware; token from `?token=` or the Authorization header."""

    async def __call__(self, scope, receive, send):
        scope = dict(scope)
        scope["user"], scope["auth_error"] = await resolve_user(token_from_scope(scope))
        return await super().__call__(scope, receive, send)
