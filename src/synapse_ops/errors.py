from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


@dataclass
class OpsError(Exception):
    """Canonical error type for walkthrough and library failures."""

    code: str
    reason: str
    details: Any | None = None

    def __str__(self) -> str:  # pragma: no cover
        if self.details is None:
            return f"{self.code}:{self.reason}"
        return f"{self.code}:{self.reason}:{self.details}"


@dataclass
class PreconditionError(OpsError):
    """A guard failed before any state-changing call (missing key, empty account, ...)."""

    hint: Optional[str] = None

    @staticmethod
    def missing_credentials(name: str) -> "PreconditionError":
        return PreconditionError("missing_credentials", f"Missing {name} in environment", hint=f"Set {name} in .env.local or .env")

    @staticmethod
    def unfunded(balance: int) -> "PreconditionError":
        return PreconditionError(
            "unfunded",
            "Payment account has no balance",
            details={"balance": balance},
            hint="Run the payments deposit walkthrough first to fund your account.",
        )

    @staticmethod
    def operator_not_approved() -> "PreconditionError":
        return PreconditionError(
            "operator_not_approved",
            "Operator allowances are not set",
            hint="The storage provider cannot charge your account without approval. Run the payments deposit walkthrough first.",
        )

    @staticmethod
    def insufficient_quota(requested: int, remaining: int) -> "PreconditionError":
        return PreconditionError(
            "insufficient_quota",
            "Insufficient quota",
            details={"requested": requested, "remaining": remaining},
            hint="User must purchase more storage.",
        )


@dataclass
class OperationError(OpsError):
    """A downstream SDK or chain call failed. Never retried."""

    @staticmethod
    def wrap(code: str, exc: BaseException) -> "OperationError":
        return OperationError(code, str(exc) or exc.__class__.__name__)
