"""Guard-clause validation for identifiers reaching the permission engine.

Every public RBAC operation validates its inputs here before any cache or
repository lookup. Violations raise ``ValidationError``.
"""

from typing import Any, Tuple

from ....config.constants import SecurityLimits
from ....core.exceptions import ValidationError


def _validate_token(value: Any, label: str, max_length: int) -> str:
    if not value or not isinstance(value, str):
        raise ValidationError(
            f"Invalid {label} provided",
            details={"field": label}
        )
    
    trimmed = value.strip()
    if not trimmed or len(trimmed) > max_length:
        raise ValidationError(
            f"Invalid {label} length",
            details={"field": label, "max_length": max_length}
        )
    
    if SecurityLimits.INVALID_INPUT_PATTERN.search(trimmed):
        raise ValidationError(
            f"Invalid characters in {label}",
            details={"field": label}
        )
    
    return value


def validate_user_id(user_id: Any) -> str:
    """Validate a user ID and return it unchanged."""
    return _validate_token(user_id, "user_id", SecurityLimits.MAX_USER_ID_LENGTH)


def validate_role_name(role_name: Any) -> str:
    """Validate a role name (or role ID used as a name) and return it unchanged."""
    return _validate_token(role_name, "role_name", SecurityLimits.MAX_ROLE_NAME_LENGTH)


def validate_resource_action(resource: Any, action: Any) -> Tuple[str, str]:
    """Validate a resource/action pair and return it unchanged."""
    return (
        _validate_token(resource, "resource", SecurityLimits.MAX_RESOURCE_LENGTH),
        _validate_token(action, "action", SecurityLimits.MAX_ACTION_LENGTH),
    )


def parse_permission_string(permission: Any) -> Tuple[str, str]:
    """Split ``resource:action`` into its validated halves.
    
    Raises:
        ValidationError: If the string does not contain exactly one colon
            with non-empty text on both sides.
    """
    if not isinstance(permission, str) or permission.count(":") != 1:
        raise ValidationError(
            "Invalid permission format. Expected 'resource:action'",
            details={"permission": str(permission)}
        )
    
    resource, action = permission.split(":")
    if not resource or not action:
        raise ValidationError(
            "Invalid permission format. Expected 'resource:action'",
            details={"permission": permission}
        )
    
    return validate_resource_action(resource, action)
