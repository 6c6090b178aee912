"""
Condition evaluator - attribute-based rules attached to a permission.

Rules are checked in order and the first applicable one decides:
``owner``, then ``minLevel``, then ``timeRestrictions``. Unknown keys allow.
"""
from collections.abc import Mapping
from datetime import datetime
from typing import Any, Callable, Optional
from zoneinfo import ZoneInfoNotFoundError

from loguru import logger

from ....config.constants import DEFAULT_TIMEZONE
from ....utils.datetime import parse_iso8601, utc_now
from ..entities import BusinessRepository, UserPermissions
from .permission_loader import get_field


class ConditionEvaluator:
    """
    Evaluates permission conditions against a request context.

    Returns True when there is nothing to check. Ownership lookups and
    unexpected errors deny. Malformed time bounds are ignored unless
    ``time_restrictions_fail_closed`` is set.
    """

    def __init__(
        self,
        business_repository: Optional[BusinessRepository] = None,
        time_restrictions_fail_closed: bool = False,
        clock: Callable[[], datetime] = utc_now
    ):
        self.business_repository = business_repository
        self.time_restrictions_fail_closed = time_restrictions_fail_closed
        self._clock = clock

    async def evaluate(
        self,
        conditions: Any,
        context: Optional[Mapping],
        user_permissions: UserPermissions
    ) -> bool:
        """
        Decide whether ``conditions`` allow the action for this user.

        Args:
            conditions: Permission conditions mapping
            context: Request attributes (``ownerId``, ``businessId``, ...)
            user_permissions: Snapshot of the acting user

        Returns:
            True if access is allowed
        """
        try:
            if not isinstance(conditions, Mapping) or not conditions:
                return True

            if conditions.get("owner") is True:
                return await self._check_owner(context, user_permissions)

            min_level = get_field(conditions, "min_level", "minLevel")
            if isinstance(min_level, int) and not isinstance(min_level, bool):
                return user_permissions.effective_level >= min_level

            restrictions = get_field(conditions, "time_restrictions", "timeRestrictions")
            if isinstance(restrictions, Mapping):
                return self._check_time_window(restrictions, user_permissions.user_id)

            return True

        except Exception as e:
            logger.bind(user_id=user_permissions.user_id, conditions=repr(conditions)).error(
                f"Condition evaluation failed for user {user_permissions.user_id}: {e}"
            )
            return False

    async def _check_owner(self, context: Optional[Mapping], user_permissions: UserPermissions) -> bool:
        """Owner rule: direct ``ownerId`` match or ownership of ``businessId``."""
        if not isinstance(context, Mapping):
            return False

        owner_id = get_field(context, "owner_id", "ownerId")
        if owner_id and isinstance(owner_id, str):
            return owner_id == user_permissions.user_id

        business_id = get_field(context, "business_id", "businessId")
        if not business_id or not isinstance(business_id, str):
            return False

        if self.business_repository is None:
            logger.warning(
                f"No business repository configured to verify ownership of {business_id}"
            )
            return False

        try:
            business = await self.business_repository.find_by_id(business_id)
        except Exception as e:
            logger.bind(user_id=user_permissions.user_id, business_id=business_id).warning(
                f"Business ownership verification failed: {e}"
            )
            return False

        if not business:
            return False
        return get_field(business, "owner_id", "ownerId") == user_permissions.user_id

    def _check_time_window(self, restrictions: Mapping, user_id: str) -> bool:
        """Deny outside ``[startTime, endTime]``; missing bounds are open."""
        tz_name = restrictions.get("timezone")
        if not tz_name or not isinstance(tz_name, str):
            tz_name = DEFAULT_TIMEZONE
        now = self._clock()

        start = self._parse_bound(get_field(restrictions, "start_time", "startTime"), tz_name, user_id)
        end = self._parse_bound(get_field(restrictions, "end_time", "endTime"), tz_name, user_id)

        if start is False or end is False:
            return False
        if start is not None and now < start:
            return False
        if end is not None and now > end:
            return False
        return True

    def _parse_bound(self, value: Any, tz_name: str, user_id: str):
        """
        Parse one time bound.

        Returns:
            The UTC datetime, None when the bound does not apply, or False
            when a malformed bound must deny
        """
        if not value or not isinstance(value, str):
            return None

        try:
            return parse_iso8601(value, source_tz=tz_name)
        except ZoneInfoNotFoundError:
            logger.warning(f"Unknown timezone {tz_name!r} in time restrictions, using UTC")
            try:
                return parse_iso8601(value)
            except ValueError:
                pass
        except ValueError:
            pass

        logger.bind(user_id=user_id, timezone=tz_name).warning(
            f"Invalid time format in time restrictions: {value!r}"
        )
        return False if self.time_restrictions_fail_closed else None
