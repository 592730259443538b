"""
HTTP API for authserver.

OAuth2-shaped endpoints on top of AuthManager:

    POST   /token/client      client credentials grant -> bearer token
    GET    /oauth/authorize   bearer token -> grant hierarchy
    GET    /user, /resource, /role, /grant      listings
    POST   /user, /resource, /role, /grant      management
    DELETE /grant                               revoke a grant

Management calls act as the user the bearer token belongs to. Bearer
tokens travel base64-encoded; core calls are blocking and run in the
default executor.
"""

import asyncio
import base64
import binascii
import functools
from typing import Any, Callable, Dict, Optional, Tuple

from aiohttp import web
from loguru import logger

from .auth import (
    AuthManager,
    AuthServerError,
    ConflictError,
    InvalidCredentialsError,
    InvalidTokenError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from .auth.models import User
from .config import Settings


MANAGER_KEY = web.AppKey("manager", AuthManager)
SETTINGS_KEY = web.AppKey("settings", Settings)

_ERROR_STATUS = (
    (InvalidCredentialsError, 401),
    (InvalidTokenError, 401),
    (PermissionDeniedError, 403),
    (NotFoundError, 404),
    (ConflictError, 409),
    (ValidationError, 400),
)


# ============================================================================
# Authorization headers
# ============================================================================

def _strip_scheme(header: Optional[str], scheme: str) -> Optional[str]:
    prefix = scheme + " "
    if not header or len(header) < len(prefix):
        return None
    if header[:len(prefix)].lower() != prefix.lower():
        return None
    return header[len(prefix):].strip()


def _b64decode(value: str) -> Optional[str]:
    try:
        return base64.b64decode(value, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None


def encode_token(token_id: str) -> str:
    """Transport form of a token ID (base64)."""
    return base64.b64encode(token_id.encode("utf-8")).decode("ascii")


def parse_bearer_header(header: Optional[str]) -> Optional[str]:
    """
    Extract the token ID from an "Authorization: Bearer <base64>" header.

    Returns:
        Token ID, or None if the header is missing or malformed
    """
    encoded = _strip_scheme(header, "Bearer")
    if not encoded:
        return None
    return _b64decode(encoded) or None


def parse_basic_header(header: Optional[str]) -> Optional[Tuple[str, str]]:
    """
    Extract (name, secret) from an HTTP Basic authorization header.

    Returns:
        (name, secret) tuple, or None if the header is missing or malformed
    """
    encoded = _strip_scheme(header, "Basic")
    if not encoded:
        return None
    decoded = _b64decode(encoded)
    if decoded is None or ":" not in decoded:
        return None
    name, secret = decoded.split(":", 1)
    if not name:
        return None
    return name, secret


# ============================================================================
# Helpers
# ============================================================================

async def _call(func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    """Run a blocking core call in the default executor."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, functools.partial(func, *args, **kwargs))


def error_response(status: int, message: str) -> web.Response:
    return web.json_response({"status": status, "message": f"Error: {message}"}, status=status)


async def _read_body(request: web.Request) -> Dict[str, Any]:
    if not request.can_read_body:
        return {}
    if request.content_type == "application/json":
        try:
            body = await request.json()
        except ValueError:
            raise ValidationError("Request body is not valid JSON")
        if not isinstance(body, dict):
            raise ValidationError("Request body must be a JSON object")
        return body
    form = await request.post()
    return dict(form)


async def _context_user(request: web.Request) -> User:
    token_id = parse_bearer_header(request.headers.get("Authorization"))
    if token_id is None:
        raise InvalidTokenError()
    return await _call(request.app[MANAGER_KEY].context_for_token, token_id)


def _field(body: Dict[str, Any], name: str, default: str = "") -> str:
    value = body.get(name, default)
    if not isinstance(value, str):
        raise ValidationError(f"{name} must be a string")
    return value


# ============================================================================
# Middleware
# ============================================================================

@web.middleware
async def error_middleware(request: web.Request, handler):
    """Map core errors onto HTTP status codes."""
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except AuthServerError as e:
        for error_type, status in _ERROR_STATUS:
            if isinstance(e, error_type):
                return error_response(status, str(e))
        logger.error(f"{request.method} {request.path} failed: {e}")
        return error_response(500, "Internal server error")


def cors_middleware(allowed_origins):
    """Add CORS headers for allowed origins."""
    allow_any = "*" in allowed_origins

    @web.middleware
    async def middleware(request: web.Request, handler):
        if request.method == "OPTIONS":
            # Preflight request
            response = web.Response()
        else:
            response = await handler(request)

        origin = request.headers.get("Origin")
        if origin and origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Access-Control-Allow-Credentials"] = "true"
            response.headers["Vary"] = "Origin"
        elif allow_any:
            # Wildcard never carries credentials
            response.headers["Access-Control-Allow-Origin"] = "*"
        else:
            return response

        response.headers["Access-Control-Allow-Methods"] = "GET, POST, DELETE, OPTIONS"
        response.headers["Access-Control-Allow-Headers"] = "Content-Type, Authorization"
        return response

    return middleware


# ============================================================================
# Handlers
# ============================================================================

async def handle_hello(request: web.Request) -> web.Response:
    return web.Response(text="Hello, world - service")


async def handle_client_credentials(request: web.Request) -> web.Response:
    """
    OAuth2 client credentials grant.

    POST /token/client
    Headers: Authorization: Basic base64(name:secret)
        (or client_id / client_secret in a form or JSON body)
    Returns: {"token_type": "Bearer", "expires_in": "3600", "access_token": "..."}
    """
    credentials = parse_basic_header(request.headers.get("Authorization"))
    if credentials is None:
        body = await _read_body(request)
        client_id = body.get("client_id")
        client_secret = body.get("client_secret")
        if not isinstance(client_id, str) or not isinstance(client_secret, str) or not client_id:
            return error_response(401, "HTTP basic auth credentials not supplied")
        credentials = (client_id, client_secret)

    manager = request.app[MANAGER_KEY]
    _, token = await _call(manager.login, *credentials)

    return web.json_response({
        "token_type": "Bearer",
        "expires_in": f"{token.expires_in().total_seconds():.0f}",
        "access_token": encode_token(token.token),
    })


async def handle_authorize(request: web.Request) -> web.Response:
    """
    Grant hierarchy for a bearer token.

    GET /oauth/authorize
    Headers: Authorization: Bearer <token>
    """
    token_id = parse_bearer_header(request.headers.get("Authorization"))
    if token_id is None:
        return error_response(401, "Bearer token was not supplied")

    grants = await _call(request.app[MANAGER_KEY].grants_for_token, token_id)
    return web.json_response(grants.to_dict())


async def handle_add_user(request: web.Request) -> web.Response:
    context = await _context_user(request)
    body = await _read_body(request)
    enabled = body.get("enabled", True)
    if not isinstance(enabled, bool):
        raise ValidationError("enabled must be a boolean")

    user = await _call(
        request.app[MANAGER_KEY].add_user,
        context,
        _field(body, "name"),
        _field(body, "secret"),
        description=_field(body, "description"),
        enabled=enabled,
    )
    return web.json_response(user.to_dict(), status=201)


async def handle_add_resource(request: web.Request) -> web.Response:
    context = await _context_user(request)
    body = await _read_body(request)
    resource = await _call(
        request.app[MANAGER_KEY].add_resource,
        context,
        _field(body, "name"),
        description=_field(body, "description"),
    )
    return web.json_response(resource.to_dict(), status=201)


async def handle_add_role(request: web.Request) -> web.Response:
    context = await _context_user(request)
    body = await _read_body(request)
    role = await _call(
        request.app[MANAGER_KEY].add_role,
        context,
        _field(body, "name"),
        description=_field(body, "description"),
    )
    return web.json_response(role.to_dict(), status=201)


async def handle_add_grant(request: web.Request) -> web.Response:
    context = await _context_user(request)
    body = await _read_body(request)
    grant = await _call(
        request.app[MANAGER_KEY].add_grant,
        context,
        _field(body, "user_id"),
        _field(body, "resource_id"),
        _field(body, "role_id"),
    )
    return web.json_response(grant.to_dict(), status=201)


async def handle_revoke_grant(request: web.Request) -> web.Response:
    context = await _context_user(request)
    body = await _read_body(request)
    await _call(
        request.app[MANAGER_KEY].revoke_grant,
        context,
        _field(body, "user_id"),
        _field(body, "resource_id"),
        _field(body, "role_id"),
    )
    return web.Response(status=204)


def _list_handler(method_name: str):
    async def handler(request: web.Request) -> web.Response:
        context = await _context_user(request)
        items = await _call(getattr(request.app[MANAGER_KEY], method_name), context)
        return web.json_response([item.to_dict() for item in items])

    return handler


# ============================================================================
# Application
# ============================================================================

def create_app(manager: AuthManager, settings: Settings) -> web.Application:
    """
    Build the aiohttp application.

    Args:
        manager: Bootstrapped AuthManager
        settings: Runtime settings (CORS origins)

    Returns:
        Configured web.Application
    """
    app = web.Application(middlewares=[
        cors_middleware(settings.allowed_origins),
        error_middleware,
    ])
    app[MANAGER_KEY] = manager
    app[SETTINGS_KEY] = settings

    app.router.add_get("/", handle_hello)
    app.router.add_post("/token/client", handle_client_credentials)
    app.router.add_get("/oauth/authorize", handle_authorize)

    app.router.add_get("/user", _list_handler("list_users"))
    app.router.add_post("/user", handle_add_user)
    app.router.add_get("/resource", _list_handler("list_resources"))
    app.router.add_post("/resource", handle_add_resource)
    app.router.add_get("/role", _list_handler("list_roles"))
    app.router.add_post("/role", handle_add_role)
    app.router.add_get("/grant", _list_handler("list_grants"))
    app.router.add_post("/grant", handle_add_grant)
    app.router.add_delete("/grant", handle_revoke_grant)

    return app
