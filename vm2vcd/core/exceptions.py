# SPDX-License-Identifier: LGPL-3.0-or-later
# vm2vcd/core/exceptions.py
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


def _safe_int(x: Any, default: int = 1) -> int:
    try:
        return int(x)
    except (TypeError, ValueError):
        return default


def _clamp_exit_code(code: int) -> int:
    # Exit codes are 0..255.
    if code < 0:
        return 1
    if code > 255:
        return 255
    return code


def _one_line(s: str, limit: int = 600) -> str:
    s = (s or "").strip().replace("\r", " ").replace("\n", " ")
    s = " ".join(s.split())
    return s if len(s) <= limit else (s[: limit - 3] + "...")


_SECRET_KEY_PARTS = (
    "pass",
    "password",
    "passwd",
    "secret",
    "token",
    "apikey",
    "api_key",
    "auth",
    "cookie",
    "session",
    "bearer",
)

REDACTED = "***REDACTED***"


def _is_secret_key(k: str) -> bool:
    ks = (k or "").lower()
    return any(p in ks for p in _SECRET_KEY_PARTS)


def _redact(ctx: Dict[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for k, v in ctx.items():
        if _is_secret_key(str(k)):
            out[k] = REDACTED
        elif isinstance(v, dict):
            out[k] = _redact(v)
        else:
            out[k] = v
    return out


def _format_context_compact(ctx: Dict[str, Any]) -> str:
    # Stable order, redaction, single-line.
    red = _redact(ctx)
    return ", ".join(f"{k}={red[k]!r}" for k in sorted(red.keys()))


@dataclass(eq=False)
class Vm2VcdError(Exception):
    """
    Base project error with:
      - stable fields for reporting/JSON
      - readable __str__ (what users see)
      - safe code handling (never crashes on int())
    """
    code: int = 1
    msg: str = "error"
    cause: Optional[BaseException] = None
    context: Optional[Dict[str, Any]] = None

    def __post_init__(self) -> None:
        self.code = _clamp_exit_code(_safe_int(self.code, default=1))
        self.msg = _one_line(self.msg) or self.__class__.__name__
        if self.context is None:
            self.context = {}
        super().__init__(self.msg)
        self.args = (self.msg,)

    def with_context(self, **ctx: Any) -> "Vm2VcdError":
        self.context.update(ctx)
        return self

    def user_message(self, *, include_context: bool = False, include_cause: bool = False) -> str:
        """
        Human-friendly message for CLI output/logs.
        """
        parts = [self.msg or self.__class__.__name__]

        if include_context and self.context:
            parts.append(f"[{_one_line(_format_context_compact(self.context))}]")

        if include_cause and self.cause is not None:
            parts.append(f"(cause: {type(self.cause).__name__}: {_one_line(str(self.cause))})")

        return " ".join(parts)

    def __str__(self) -> str:
        return self.user_message(include_context=False, include_cause=False)

    def to_dict(self, *, include_cause: bool = False) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "type": self.__class__.__name__,
            "code": self.code,
            "message": self.msg,
            "context": _redact(self.context or {}),
        }
        if include_cause and self.cause is not None:
            d["cause"] = {"type": type(self.cause).__name__, "message": _one_line(str(self.cause))}
        return d


class Fatal(Vm2VcdError):
    """
    User-facing fatal error (exit code should be honored by top-level main()).
    """
    pass


class VMwareError(Vm2VcdError):
    """
    vSphere/vCenter operation failed.
    Use for pyvmomi / SDK / vSphere Automation REST errors.
    """
    pass


class VcdError(Vm2VcdError):
    """
    Cloud Director (tenant-management) API call failed.
    """
    pass


class MetadataValueError(Vm2VcdError):
    """
    A metadata value does not fit its declared type (e.g. "1.5" as Number).
    """
    pass


# ---------------------------------------------------------------------------
# Per-VM migration failures. Each one skips the VM; none aborts the batch.
# ---------------------------------------------------------------------------


class InvalidReason(str, Enum):
    SOURCE_NOT_FOUND = "SourceNotFound"
    ALREADY_MIGRATED = "AlreadyMigrated"
    UNKNOWN_OS_CLASS = "UnknownOsClass"
    NO_NETWORK = "NoNetwork"
    MULTIPLE_NETWORKS = "MultipleNetworks"
    DESTINATION_POOL_NOT_FOUND = "DestinationPoolNotFound"
    FOLDER_NOT_FOUND = "FolderNotFound"
    AMBIGUOUS_FOLDER = "AmbiguousFolder"


class PlacementReason(str, Enum):
    INSUFFICIENT_CAPACITY = "InsufficientCapacity"
    STORAGE_POOL_NOT_FOUND = "StoragePoolNotFound"


@dataclass(eq=False)
class MigrationSkip(Vm2VcdError):
    """Base for anything that ends one VM's run early."""

    code: int = 3

    @property
    def category(self) -> str:
        return self.__class__.__name__

    def reason_text(self) -> str:
        return f"{self.category}: {self.msg}"


@dataclass(eq=False)
class ValidationFailure(MigrationSkip):
    reason: InvalidReason = InvalidReason.SOURCE_NOT_FOUND

    def reason_text(self) -> str:
        return f"{self.category}[{self.reason.value}]: {self.msg}"


@dataclass(eq=False)
class PlacementFailure(MigrationSkip):
    reason: PlacementReason = PlacementReason.INSUFFICIENT_CAPACITY

    def reason_text(self) -> str:
        return f"{self.category}[{self.reason.value}]: {self.msg}"


@dataclass(eq=False)
class NetworkResolutionFailure(MigrationSkip):
    adapter: str = ""


@dataclass(eq=False)
class ExecutionFailure(MigrationSkip):
    task_id: str = ""


@dataclass(eq=False)
class ImportFailure(MigrationSkip):
    pass


def wrap_vmware(msg: str, exc: Optional[BaseException] = None, code: int = 50, **context: Any) -> VMwareError:
    return VMwareError(code=code, msg=msg, cause=exc, context=context or None)


def wrap_vcd(msg: str, exc: Optional[BaseException] = None, code: int = 60, **context: Any) -> VcdError:
    return VcdError(code=code, msg=msg, cause=exc, context=context or None)


def format_exception_for_cli(e: BaseException, *, verbose: int = 0) -> str:
    """
    One-liner output for CLI.

    verbose=0: just message
    verbose=1: message + compact context (if any)
    verbose>=2: message + context + cause
    """
    if isinstance(e, Vm2VcdError):
        return e.user_message(
            include_context=(verbose >= 1),
            include_cause=(verbose >= 2),
        )

    if verbose >= 2:
        return f"{type(e).__name__}: {_one_line(str(e))}"
    return _one_line(str(e)) or type(e).__name__
