"""JSON-RPC control-plane request/response schemas."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


JSONRPC_VERSION = "2.0"


class CallOverrides(BaseModel):
    """Per-call overrides, sent to the SUT as ``commonTransactionParams``.

    Without overrides the SUT signs and pays with the session's operator.
    ``transaction_id`` selects an alternate fee payer (``payer@seconds.nanos``
    or just the payer account id) and ``signers`` adds signatures.
    """

    model_config = ConfigDict(
        frozen=True, alias_generator=to_camel, populate_by_name=True
    )

    transaction_id: Optional[str] = None
    max_transaction_fee: Optional[int] = None
    valid_transaction_duration: Optional[int] = None
    memo: Optional[str] = None
    regenerate_transaction_id: Optional[bool] = None
    signers: Optional[List[str]] = Field(default=None, repr=False)

    def to_params(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class OperationRequest(BaseModel):
    """One control-plane operation. Immutable once built; never resent."""

    model_config = ConfigDict(frozen=True)

    method: str = Field(..., min_length=1)
    params: Dict[str, Any] = Field(default_factory=dict)
    overrides: Optional[CallOverrides] = None

    def wire_params(self, session_id: str | None) -> Dict[str, Any]:
        """Params as sent on the wire, with session id and overrides merged in."""
        params = dict(self.params)
        if self.overrides is not None:
            common = dict(params.get("commonTransactionParams") or {})
            common.update(self.overrides.to_params())
            params["commonTransactionParams"] = common
        if session_id is not None:
            params["sessionId"] = session_id
        return params


class RpcErrorData(BaseModel):
    """Optional ``error.data`` payload; ``status`` marks a network rejection."""

    model_config = ConfigDict(extra="allow")

    status: Optional[str] = None
    message: Optional[str] = None


class RpcError(BaseModel):
    model_config = ConfigDict(extra="allow")

    code: int
    message: str = ""
    data: Optional[RpcErrorData] = None


class RpcResponse(BaseModel):
    """JSON-RPC 2.0 response envelope."""

    model_config = ConfigDict(extra="allow")

    jsonrpc: str = JSONRPC_VERSION
    id: Optional[int | str] = None
    result: Optional[Any] = None
    error: Optional[RpcError] = None


class OperationResult(dict):
    """Success payload of an operation.

    A plain mapping of the method-specific fields; ``status`` and the created
    entity id (``accountId``, ``tokenId``...) are the common ones.
    """

    @property
    def status(self) -> str | None:
        return self.get("status")

    @property
    def created_id(self) -> str | None:
        """First ``*Id`` field in the payload, if any."""
        for key in (
            "accountId",
            "tokenId",
            "topicId",
            "contractId",
            "scheduleId",
            "fileId",
            "nodeId",
        ):
            if self.get(key) is not None:
                return str(self[key])
        return None
