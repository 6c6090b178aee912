"""Input validators for the permission engine."""

from .input_validator import (
    validate_user_id,
    validate_role_name,
    validate_resource_action,
    parse_permission_string,
)

__all__ = [
    "validate_user_id",
    "validate_role_name",
    "validate_resource_action",
    "parse_permission_string",
]
