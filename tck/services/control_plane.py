"""
Control-plane client - JSON-RPC round trips to the SUT.

One call, one HTTP POST. Nothing here retries: ledger operations have side
effects (an account created twice is two accounts), so a caller that wants
another attempt must build and send a new request.

Failures are classified before they leave this module:

    JSON-RPC error with data.status  -> DomainRejection(status)
    any other JSON-RPC error         -> TransportFailure(code)
    -32601 / result NOT_IMPLEMENTED  -> OperationNotSupported
    connect/timeout/HTTP/JSON errors -> TransportFailure(SUT_UNREACHABLE |
                                        PARSE_ERROR | INVALID_REQUEST)
"""

from __future__ import annotations

import itertools
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import ValidationError

from tck.core.config import Settings, get_settings
from tck.core.exceptions import (
    DOMAIN_ERROR_CODE,
    DomainRejection,
    OperationNotSupported,
    StaleSessionError,
    TransportCode,
    TransportFailure,
)
from tck.core.keys import KeyType
from tck.core.logging import get_logger
from tck.schemas.rpc import (
    JSONRPC_VERSION,
    CallOverrides,
    OperationRequest,
    OperationResult,
    RpcError,
    RpcResponse,
)

if TYPE_CHECKING:
    from tck.services.session import Session


logger = get_logger("control_plane")

NOT_IMPLEMENTED = "NOT_IMPLEMENTED"


class ControlPlaneClient:
    """
    Sends named operations to the SUT over JSON-RPC 2.0.

    Usage:
        with ControlPlaneClient.from_settings() as client:
            result = client.send(session, "createAccount", {"key": key})
            account_id = result["accountId"]
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.base_url = base_url
        self._http = httpx.Client(
            timeout=timeout,
            transport=transport,
            headers={"Content-Type": "application/json"},
        )
        self._ids = itertools.count()

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> "ControlPlaneClient":
        settings = settings or get_settings()
        return cls(
            settings.json_rpc_server_url,
            timeout=settings.http_timeout,
            transport=transport,
        )

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "ControlPlaneClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def send(
        self,
        session: "Session",
        method: str,
        params: dict[str, Any] | None = None,
        overrides: CallOverrides | None = None,
    ) -> OperationResult:
        """Issue one operation within ``session``.

        Raises:
            StaleSessionError: the session was closed or superseded
            DomainRejection: the network rejected the operation
            TransportFailure: the request could not be built or delivered
        """
        if not session.is_active:
            raise StaleSessionError(session.session_id, method=method)
        request = OperationRequest(method=method, params=params or {}, overrides=overrides)
        return self.execute(request, session_id=session.session_id)

    def execute(
        self, request: OperationRequest, session_id: str | None = None
    ) -> OperationResult:
        """Send a prepared request. Used directly for session setup and reset."""
        request_id = next(self._ids)
        payload = {
            "jsonrpc": JSONRPC_VERSION,
            "id": request_id,
            "method": request.method,
            "params": request.wire_params(session_id),
        }
        logger.debug(f"-> {request.method} #{request_id} {payload['params']}")

        response = self._post(request.method, payload)
        envelope = self._decode(request.method, response)

        if envelope.id is not None and envelope.id != request_id:
            raise TransportFailure(
                TransportCode.INVALID_REQUEST,
                f"Response id {envelope.id} does not match request id {request_id}",
                method=request.method,
            )

        if envelope.error is not None:
            raise self._classify(request.method, envelope.error)

        result = envelope.result if envelope.result is not None else {}
        if not isinstance(result, dict):
            result = {"value": result}
        if result.get("error") == NOT_IMPLEMENTED:
            logger.warning(f"Method {request.method} not implemented by the SUT")
            raise OperationNotSupported(request.method)

        logger.debug(f"<- {request.method} #{request_id} {result}")
        return OperationResult(result)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _post(self, method: str, payload: dict[str, Any]) -> httpx.Response:
        try:
            response = self._http.post(self.base_url, json=payload)
        except httpx.DecodingError as e:
            raise TransportFailure(
                TransportCode.PARSE_ERROR,
                f"Undecodable HTTP body from SUT: {e}",
                method=method,
            ) from e
        except httpx.RequestError as e:
            logger.error(f"SUT unreachable at {self.base_url} for {method}: {e}")
            raise TransportFailure(
                TransportCode.SUT_UNREACHABLE,
                f"SUT unreachable at {self.base_url}: {e}",
                method=method,
            ) from e

        if response.status_code != 200:
            raise TransportFailure(
                TransportCode.INTERNAL_ERROR,
                f"SUT answered HTTP {response.status_code}: {response.reason_phrase}",
                method=method,
                details={"http_status": response.status_code},
            )
        return response

    def _decode(self, method: str, response: httpx.Response) -> RpcResponse:
        try:
            return RpcResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise TransportFailure(
                TransportCode.PARSE_ERROR,
                f"Undecodable JSON-RPC response: {e}",
                method=method,
            ) from e

    def _classify(self, method: str, error: RpcError) -> DomainRejection | TransportFailure:
        status = error.data.status if error.data is not None else None
        if status:
            logger.info(f"{method} rejected by network: {status}")
            return DomainRejection(
                status,
                error.data.message or error.message or status,
                code=error.code,
                method=method,
            )

        if error.code == TransportCode.METHOD_NOT_FOUND:
            logger.warning(f"Method {method} not found on the SUT")
            return OperationNotSupported(method, error.message or None)

        if error.code == DOMAIN_ERROR_CODE:
            # Network error code without a status is still a protocol defect
            logger.warning(f"{method} returned a network error without status")

        logger.info(f"{method} failed with transport code {error.code}: {error.message}")
        return TransportFailure(
            error.code,
            error.message or None,
            method=method,
            details=error.data.model_dump(exclude_none=True) if error.data else None,
        )


def generate_key(
    client: ControlPlaneClient,
    session: "Session",
    key_type: KeyType | str,
    from_key: str | None = None,
    threshold: int | None = None,
    keys: list[dict[str, Any]] | None = None,
) -> str:
    """Ask the SUT to generate a key and return it as DER hex.

    ``keys`` describes the members of a ``keyList``/``thresholdKey``, e.g.
    ``[{"type": "ed25519PublicKey"}, {"type": "ecdsaSecp256k1PrivateKey"}]``.
    """
    params: dict[str, Any] = {"type": KeyType(key_type).value}
    if from_key is not None:
        params["fromKey"] = from_key
    if threshold is not None:
        params["threshold"] = threshold
    if keys is not None:
        params["keys"] = keys
    return client.send(session, "generateKey", params)["key"]
