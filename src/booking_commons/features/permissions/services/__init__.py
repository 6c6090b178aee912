"""Permission services package."""

from .permission_loader import PermissionLoader
from .condition_evaluator import ConditionEvaluator
from .rbac_service import RBACService

__all__ = [
    "PermissionLoader",
    "ConditionEvaluator",
    "RBACService",
]
