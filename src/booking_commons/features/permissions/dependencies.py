"""FastAPI dependency helpers for enforcing permissions, roles and levels.

The acting user is read from ``request.state.user_id`` (set by the
application's authentication middleware) and the ``RBACService`` from
``request.app.state.rbac_service``. Path parameters are passed as the
condition context, so routes like ``/businesses/{business_id}`` work with
ownership conditions out of the box.
"""

from typing import Any, Awaitable, Callable, Dict, List, Optional

from fastapi import Depends, HTTPException, Request, status

from ...core.exceptions import BookingCommonsError, create_error_response, get_http_status_code
from .services import RBACService


ContextGetter = Callable[[Request], Dict[str, Any]]


# Basic Context Dependencies

def get_rbac_service(request: Request) -> RBACService:
    """Get the application's RBAC service."""
    rbac_service = getattr(request.app.state, "rbac_service", None)
    if rbac_service is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="RBAC service not configured"
        )
    return rbac_service


def get_current_user(request: Request) -> Optional[str]:
    """Get current authenticated user ID."""
    return getattr(request.state, "user_id", None)


def require_authentication(request: Request) -> str:
    """Require authenticated user, raise 401 if not authenticated."""
    user_id = get_current_user(request)
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"}
        )
    return user_id


def get_path_context(request: Request) -> Dict[str, Any]:
    """Default condition context: the route's path parameters."""
    return dict(request.path_params)


def _to_http_exception(error: Exception) -> HTTPException:
    if isinstance(error, BookingCommonsError):
        return HTTPException(
            status_code=get_http_status_code(error),
            detail=create_error_response(error)["error"]
        )
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Permission check failed"
    )


def _dependency(check: Callable[[RBACService, str, Request], Awaitable[None]]):
    async def _run_check(
        request: Request,
        rbac_service: RBACService = Depends(get_rbac_service)
    ) -> str:
        user_id = require_authentication(request)
        try:
            await check(rbac_service, user_id, request)
        except HTTPException:
            raise
        except Exception as e:
            raise _to_http_exception(e)
        return user_id

    return _run_check


# Permission-Based Dependencies

def require_permission(permission: str, context_getter: ContextGetter = get_path_context):
    """Create a dependency that requires a specific permission.

    Usage:
        @router.delete("/businesses/{business_id}/appointments/{appointment_id}")
        async def cancel_appointment(
            user_id: str = Depends(require_permission("appointment:cancel"))
        ):
            # Only users allowed to cancel (e.g. the business owner) get here
            pass
    """
    async def check(rbac_service: RBACService, user_id: str, request: Request) -> None:
        await rbac_service.require_permission(
            user_id,
            permission,
            context=context_getter(request),
            error_context={"permission": permission, "path": request.url.path}
        )

    return _dependency(check)


def require_any_permission(permissions: List[str], context_getter: ContextGetter = get_path_context):
    """Create a dependency that requires any of the specified permissions."""
    async def check(rbac_service: RBACService, user_id: str, request: Request) -> None:
        if not await rbac_service.require_any(user_id, permissions, context=context_getter(request)):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"One of these permissions is required: {', '.join(permissions)}"
            )

    return _dependency(check)


def require_all_permissions(permissions: List[str], context_getter: ContextGetter = get_path_context):
    """Create a dependency that requires all of the specified permissions."""
    async def check(rbac_service: RBACService, user_id: str, request: Request) -> None:
        await rbac_service.require_all(user_id, permissions, context=context_getter(request))

    return _dependency(check)


# Role and Level Dependencies

def require_role(role_name: str):
    """Create a dependency that requires a specific role."""
    async def check(rbac_service: RBACService, user_id: str, request: Request) -> None:
        await rbac_service.require_role(user_id, role_name)

    return _dependency(check)


def require_min_level(min_level: int):
    """Create a dependency that requires a minimum effective role level.

    Usage:
        @router.get("/admin/reports")
        async def reports(user_id: str = Depends(require_min_level(250))):
            pass
    """
    async def check(rbac_service: RBACService, user_id: str, request: Request) -> None:
        await rbac_service.require_min_level(user_id, min_level)

    return _dependency(check)
