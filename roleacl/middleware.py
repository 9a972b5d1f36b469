"""
FastAPI integration.

``acl_dependency`` builds a route dependency that derives
``(user_id, resource, actions)`` from the request and asks ``Acl.is_allowed``.
It performs no resolution of its own.

Failures map to the error hierarchy in ``roleacl.errors``:
- no user id: AuthError (401)
- backend failure while checking: InternalError (500)
- denied: PermissionError (403)

``register_exception_handlers`` renders those errors as plain text, JSON or
HTML.
"""
from __future__ import annotations

import inspect
import logging
from typing import TYPE_CHECKING, Any, Callable

from fastapi import FastAPI, Request, status
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse, Response

from . import contract
from .errors import AccessError, AuthError, InternalError, PermissionError, error_payload

if TYPE_CHECKING:
    from .acl import Acl

logger = logging.getLogger("roleacl.middleware")

UserIdSource = contract.UserId | Callable[[Request], Any] | None


def resource_from_path(path: str, num_path_components: int | None) -> str:
    """Truncate ``path`` to its first ``num_path_components`` segments.

    ``/blogs/12/comments`` with 1 component becomes ``/blogs``. ``None`` or 0
    keeps the whole path.
    """
    if not num_path_components:
        return path
    return "/".join(path.split("/")[: num_path_components + 1])


async def _resolve_user_id(request: Request, source: UserIdSource) -> Any:
    if callable(source):
        value = source(request)
        if inspect.isawaitable(value):
            value = await value
        return value
    if source is not None:
        return source

    session = request.scope.get("session")
    if isinstance(session, dict) and session.get("user_id"):
        return session["user_id"]
    user = request.scope.get("user")
    return getattr(user, "id", None)


def acl_dependency(
    acl: "Acl",
    num_path_components: int | None = None,
    user_id: UserIdSource = None,
    actions: contract.Names | None = None,
) -> Callable[[Request], Any]:
    """
    Build a FastAPI dependency enforcing ``acl.is_allowed`` for the request.

    Args:
        acl: The Acl instance to query
        num_path_components: Number of leading path segments forming the resource
        user_id: Fixed user id, or a callable ``(request) -> user id`` (may be async).
            When omitted, ``session["user_id"]`` then ``request.user.id`` are used.
        actions: Permission(s) to require. Defaults to the lower-cased HTTP method.

    Returns:
        Dependency function suitable for ``Depends`` or ``dependencies=[...]``
    """
    num_path_components = contract.validate_path_components(num_path_components)
    if user_id is not None and not callable(user_id):
        contract.validate_user_id(user_id)
    fixed_actions = contract.validate_optional_names(actions, "actions")

    async def dependency(request: Request) -> None:
        current_user = await _resolve_user_id(request, user_id)
        if current_user is None or current_user == "":
            raise AuthError()

        resource = resource_from_path(request.url.path, num_path_components)
        wanted = fixed_actions or [request.method.lower()]
        acl.logger.debug("Requesting %s on %s by user %s", wanted, resource, current_user)

        try:
            allowed = await acl.is_allowed(current_user, resource, wanted)
        except Exception as exc:
            logger.error(
                "Permission check failed user_id=%s resource=%s error=%s",
                current_user,
                resource,
                exc,
            )
            raise InternalError() from exc

        if not allowed:
            acl.logger.debug("Not allowed %s on %s by user %s", wanted, resource, current_user)
            if acl.logger.isEnabledFor(logging.DEBUG):
                await _log_allowed_permissions(acl, current_user, resource)
            raise PermissionError(details={"resource": resource, "actions": wanted})

        acl.logger.debug("Allowed %s on %s by user %s", wanted, resource, current_user)

    return dependency


async def _log_allowed_permissions(acl: "Acl", user_id: Any, resource: str) -> None:
    try:
        permissions = await acl.allowed_permissions(user_id, resource)
    except Exception as exc:
        acl.logger.debug("Could not load allowed permissions user_id=%s error=%s", user_id, exc)
        return
    acl.logger.debug(
        "Allowed permissions: %s",
        {name: sorted(granted) for name, granted in permissions.items()},
    )


def register_exception_handlers(app: FastAPI, content_type: str | None = None) -> None:
    """Render AccessError subclasses with their status code.

    Args:
        app: Application to install the handler on
        content_type: ``"json"``, ``"html"``, or None for plain text
    """

    async def handle_access_error(request: Request, exc: AccessError) -> Response:
        log_message = f"[{exc.code}] path={request.url.path} message={exc.message}"
        if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
            logger.error(log_message, exc_info=exc)
        else:
            logger.warning(log_message)

        if content_type == "json":
            return JSONResponse(
                status_code=exc.status_code,
                content=error_payload(exc),
            )
        if content_type == "html":
            return HTMLResponse(status_code=exc.status_code, content=exc.message)
        return PlainTextResponse(status_code=exc.status_code, content=exc.message)

    app.add_exception_handler(AccessError, handle_access_error)
