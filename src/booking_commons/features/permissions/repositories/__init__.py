"""Permission repositories package.

AsyncPG implementations of the role and business repository protocols.
"""

from .role_repository import AsyncPGRoleRepository
from .business_repository import AsyncPGBusinessRepository

__all__ = [
    "AsyncPGRoleRepository",
    "AsyncPGBusinessRepository",
]
