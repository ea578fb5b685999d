"""Harness exceptions and the control-plane error taxonomy.

Every failure coming back from the SUT is classified into exactly one of two
channels:

- ``DomainRejection``: the SUT reached the network and the network rejected
  the operation for a business reason (``data.status`` such as
  ``INVALID_SIGNATURE``). The status vocabulary is open-ended.
- ``TransportFailure``: the request could not be built or delivered
  (malformed identifier, serialization failure, unreachable SUT). Codes come
  from the closed ``TransportCode`` enumeration.

The two code spaces are disjoint. Branch on the class (or ``channel``) before
comparing values:

    try:
        client.send(session, "createAccount", {"key": key})
    except ControlPlaneError as err:
        match err:
            case DomainRejection(status="KEY_REQUIRED"):
                ...
            case TransportFailure(code=TransportCode.INTERNAL_ERROR):
                ...
"""

from __future__ import annotations

from enum import IntEnum
from typing import Any


# JSON-RPC error code the SUT uses for network-side rejections
DOMAIN_ERROR_CODE = -32001


class TransportCode(IntEnum):
    """Closed set of transport/internal error codes."""

    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603
    # Harness-side codes, raised locally without a response from the SUT
    SUT_UNREACHABLE = -32098
    STALE_SESSION = -32097

    @classmethod
    def from_wire(cls, code: int) -> "TransportCode":
        """Map a wire code into the enumeration, folding unknown codes into INTERNAL_ERROR."""
        try:
            return cls(code)
        except ValueError:
            return cls.INTERNAL_ERROR


class HarnessError(Exception):
    """Base harness exception with a structured representation."""

    error_code: str = "HARNESS_ERROR"
    message: str = "Harness failure"

    def __init__(
        self,
        message: str | None = None,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message or self.message
        self.error_code = error_code or self.error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.error_code,
            "message": self.message,
            **({"details": self.details} if self.details else {}),
        }


class ConfigurationError(HarnessError):
    """Harness configuration is missing or invalid."""

    error_code = "CONFIGURATION_ERROR"
    message = "Invalid harness configuration"


# =============================================================================
# Control-plane taxonomy
# =============================================================================


class ControlPlaneError(HarnessError):
    """A classified failure returned by (or on the way to) the SUT."""

    channel: str = "unknown"
    error_code = "CONTROL_PLANE_ERROR"

    def __init__(
        self,
        message: str | None = None,
        *,
        method: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.method = method
        super().__init__(message, details=details)


class DomainRejection(ControlPlaneError):
    """The network rejected the operation; ``status`` is the network's reason."""

    __match_args__ = ("status",)

    channel = "domain"
    error_code = "DOMAIN_REJECTION"

    def __init__(
        self,
        status: str,
        message: str | None = None,
        *,
        code: int = DOMAIN_ERROR_CODE,
        method: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.status = status
        self.code = code
        super().__init__(message or status, method=method, details=details)

    def __repr__(self) -> str:
        return f"DomainRejection(status={self.status!r}, method={self.method!r})"

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "channel": self.channel, "status": self.status}


class TransportFailure(ControlPlaneError):
    """The request could not be constructed, transmitted or decoded."""

    __match_args__ = ("code",)

    channel = "transport"
    error_code = "TRANSPORT_FAILURE"

    def __init__(
        self,
        code: TransportCode | int,
        message: str | None = None,
        *,
        method: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.code = TransportCode.from_wire(int(code))
        super().__init__(message or self.code.name, method=method, details=details)

    def __repr__(self) -> str:
        return f"TransportFailure(code={self.code.name}, method={self.method!r})"

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "channel": self.channel, "code": int(self.code)}


class OperationNotSupported(TransportFailure):
    """The SUT does not implement the requested method."""

    error_code = "NOT_SUPPORTED"

    def __init__(self, method: str, message: str | None = None):
        super().__init__(
            TransportCode.METHOD_NOT_FOUND,
            message or f"Method {method} not implemented by the SUT",
            method=method,
        )


class StaleSessionError(TransportFailure):
    """A call was made through a session that is closed or was superseded."""

    error_code = "STALE_SESSION"

    def __init__(self, session_id: str, method: str | None = None):
        self.session_id = session_id
        super().__init__(
            TransportCode.STALE_SESSION,
            f"Session {session_id} is no longer active",
            method=method,
            details={"session_id": session_id},
        )


# =============================================================================
# Oracle failures
# =============================================================================


class EntityNotFound(HarnessError):
    """The oracle records the entity as absent (never existed or deleted)."""

    error_code = "NOT_FOUND"
    message = "Entity not found"

    def __init__(self, ref: Any, oracle: str, status: str | None = None):
        self.ref = ref
        self.oracle = oracle
        self.status = status
        super().__init__(
            f"{ref} not found on {oracle}" + (f" ({status})" if status else ""),
            details={"oracle": oracle, **({"status": status} if status else {})},
        )


class OracleUnavailable(HarnessError):
    """An oracle could not answer (network failure, 5xx, undecodable body)."""

    error_code = "ORACLE_UNAVAILABLE"
    message = "Oracle temporarily unavailable"

    def __init__(self, oracle: str, message: str | None = None):
        self.oracle = oracle
        super().__init__(
            f"{oracle}: {message or self.message}", details={"oracle": oracle}
        )


class VerificationOrderError(HarnessError):
    """A read-replica check was attempted before a ground-truth baseline existed."""

    error_code = "VERIFICATION_ORDER"

    def __init__(self, ref: Any):
        self.ref = ref
        super().__init__(
            f"No ground-truth baseline for {ref}; establish it before corroborating "
            "against the read replica"
        )
