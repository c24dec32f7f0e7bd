"""
Access Guards - enforce requirements in front of operations.

Each guard resolves the caller, asks the decision engine, and returns an
AccessDecision:

- no usable identity, unknown or inactive user -> UNAUTHENTICATED
- the engine says no                            -> FORBIDDEN
- the engine could not decide (store failure)   -> INTERNAL, logged with
                                                  its traceback

Denials carry only the error kind. Which permission or role was missing is
never part of the decision, its message or its log record.
"""

from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional
from uuid import UUID

from services.logging_config import AccessLogger

from .access import AccessDecisionEngine
from .errors import ERRORS_BY_KIND, ErrorKind


def parse_caller_id(raw: Any) -> Optional[UUID]:
    """Turn an identity value (UUID or string) into a UUID, or None if unusable."""
    if raw is None:
        return None
    if isinstance(raw, UUID):
        return raw
    try:
        return UUID(str(raw).strip())
    except (ValueError, AttributeError):
        return None


@dataclass(frozen=True)
class AccessDecision:
    """Outcome of a guard."""
    allowed: bool
    error_kind: Optional[ErrorKind] = None
    user_id: Optional[UUID] = None

    @classmethod
    def allow(cls, user_id: UUID) -> "AccessDecision":
        return cls(allowed=True, user_id=user_id)

    @classmethod
    def deny(cls, kind: ErrorKind, user_id: Optional[UUID] = None) -> "AccessDecision":
        return cls(allowed=False, error_kind=kind, user_id=user_id)

    def raise_for_denial(self) -> None:
        """Raise the error matching a denial; no-op when allowed."""
        if self.allowed:
            return
        raise ERRORS_BY_KIND[self.error_kind]()


class AccessGuard:
    """
    Guard factory over an AccessDecisionEngine.

    Usage:
        guard = AccessGuard(AccessDecisionEngine(repo))
        decision = guard.require_permission(caller_id, "candidate.update")
        decision.raise_for_denial()
    """

    def __init__(self, engine: AccessDecisionEngine, access_logger: Optional[AccessLogger] = None):
        self.engine = engine
        self.access_logger = access_logger or AccessLogger()

    def require_permission(self, caller: Any, permission_name: str) -> AccessDecision:
        return self._evaluate(
            "require_permission",
            caller,
            lambda user_id: self.engine.has_permission(user_id, permission_name),
        )

    def require_role(self, caller: Any, role_name: str) -> AccessDecision:
        return self._evaluate(
            "require_role",
            caller,
            lambda user_id: self.engine.has_role(user_id, role_name),
        )

    def require_minimum_role(self, caller: Any, role_name: str) -> AccessDecision:
        return self._evaluate(
            "require_minimum_role",
            caller,
            lambda user_id: self.engine.can_access_resource(user_id, role_name),
        )

    def require_any_role(self, caller: Any, role_names: Iterable[str]) -> AccessDecision:
        role_names = list(role_names)
        return self._evaluate(
            "require_any_role",
            caller,
            lambda user_id: self.engine.has_any_role(user_id, role_names),
        )

    def require_authenticated(self, caller: Any) -> AccessDecision:
        return self._evaluate("require_authenticated", caller, lambda user_id: True)

    def _evaluate(
        self,
        guard: str,
        caller: Any,
        predicate: Callable[[UUID], bool],
    ) -> AccessDecision:
        user_id = parse_caller_id(caller)
        if user_id is None:
            self.access_logger.denied(guard, caller, ErrorKind.UNAUTHENTICATED.value)
            return AccessDecision.deny(ErrorKind.UNAUTHENTICATED)

        try:
            if not self.engine.is_active_user(user_id):
                self.access_logger.denied(guard, user_id, ErrorKind.UNAUTHENTICATED.value)
                return AccessDecision.deny(ErrorKind.UNAUTHENTICATED, user_id)

            allowed = predicate(user_id)
        except Exception as exc:  # injected stores need not be SQL-backed
            self.access_logger.failed(guard, user_id, exc)
            return AccessDecision.deny(ErrorKind.INTERNAL, user_id)

        if not allowed:
            self.access_logger.denied(guard, user_id, ErrorKind.FORBIDDEN.value)
            return AccessDecision.deny(ErrorKind.FORBIDDEN, user_id)

        self.access_logger.allowed(guard, user_id)
        return AccessDecision.allow(user_id)
