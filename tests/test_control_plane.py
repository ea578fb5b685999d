"""Tests for the JSON-RPC control-plane client.

Tests verify:
- Request envelope (jsonrpc, id, sessionId, commonTransactionParams)
- Error classification into the domain and transport channels
- Local transport failures (unreachable SUT, HTTP errors, bad JSON)
- No hidden retries: one call is one request
"""

from __future__ import annotations

import httpx
import pytest

from tck.core.exceptions import (
    ControlPlaneError,
    DomainRejection,
    OperationNotSupported,
    StaleSessionError,
    TransportCode,
    TransportFailure,
)
from tck.core.keys import KeyType
from tck.schemas.rpc import CallOverrides, OperationRequest
from tck.services.control_plane import ControlPlaneClient, generate_key
from tests.fakes import ED25519_PRIVATE_DER, ED25519_PUBLIC_DER, SUT_URL


@pytest.fixture
def session(session_manager):
    return session_manager.open()


class TestRequestEnvelope:
    """Tests for what goes on the wire."""

    def test_send_returns_result_payload(self, fake_sut, session):
        fake_sut.respond("createAccount", {"accountId": "0.0.1001", "status": "SUCCESS"})

        result = session.send("createAccount", {"key": ED25519_PUBLIC_DER})

        assert result["accountId"] == "0.0.1001"
        assert result.status == "SUCCESS"
        assert result.created_id == "0.0.1001"

    def test_envelope_is_jsonrpc_2(self, fake_sut, session):
        fake_sut.respond("createAccount", {"accountId": "0.0.1001"})

        session.send("createAccount", {"key": ED25519_PUBLIC_DER})

        request = fake_sut.calls("createAccount")[0]
        assert request["jsonrpc"] == "2.0"
        assert isinstance(request["id"], int)

    def test_session_id_is_sent_with_every_call(self, fake_sut, session):
        fake_sut.respond("createAccount", {"accountId": "0.0.1001"})

        session.send("createAccount", {"key": ED25519_PUBLIC_DER})

        params = fake_sut.calls("createAccount")[0]["params"]
        assert params["sessionId"] == session.session_id
        assert params["key"] == ED25519_PUBLIC_DER

    def test_request_ids_are_unique(self, fake_sut, session):
        fake_sut.respond("generateKey", {"key": ED25519_PRIVATE_DER})

        session.send("generateKey", {"type": "ed25519PrivateKey"})
        session.send("generateKey", {"type": "ed25519PrivateKey"})

        ids = [r["id"] for r in fake_sut.requests]
        assert len(ids) == len(set(ids))

    def test_overrides_become_common_transaction_params(self, fake_sut, session):
        fake_sut.respond("deleteAccount", {"status": "SUCCESS"})
        overrides = CallOverrides(
            max_transaction_fee=100_000_000,
            signers=[ED25519_PRIVATE_DER],
            transaction_id="0.0.1001",
        )

        session.send("deleteAccount", {"deleteAccountId": "0.0.1001"}, overrides=overrides)

        common = fake_sut.calls("deleteAccount")[0]["params"]["commonTransactionParams"]
        assert common == {
            "maxTransactionFee": 100_000_000,
            "signers": [ED25519_PRIVATE_DER],
            "transactionId": "0.0.1001",
        }

    def test_no_overrides_sends_no_common_params(self, fake_sut, session):
        fake_sut.respond("createAccount", {"accountId": "0.0.1001"})

        session.send("createAccount", {"key": ED25519_PUBLIC_DER})

        assert "commonTransactionParams" not in fake_sut.calls("createAccount")[0]["params"]

    def test_non_object_result_is_wrapped(self, fake_sut, session):
        fake_sut.respond("getVersion", "0.1.0")

        result = session.send("getVersion")

        assert result == {"value": "0.1.0"}

    def test_generate_key_helper(self, fake_sut, control_plane, session):
        fake_sut.respond("generateKey", {"key": ED25519_PUBLIC_DER})

        key = generate_key(
            control_plane, session, KeyType.ED25519_PUBLIC, from_key=ED25519_PRIVATE_DER
        )

        assert key == ED25519_PUBLIC_DER
        params = fake_sut.calls("generateKey")[0]["params"]
        assert params["type"] == "ed25519PublicKey"
        assert params["fromKey"] == ED25519_PRIVATE_DER
        assert "threshold" not in params


class TestErrorClassification:
    """Tests for the domain/transport split."""

    def test_status_in_error_data_is_domain_rejection(self, fake_sut, session):
        fake_sut.reject("createAccount", "KEY_REQUIRED")

        with pytest.raises(DomainRejection) as exc_info:
            session.send("createAccount", {})

        err = exc_info.value
        assert err.status == "KEY_REQUIRED"
        assert err.channel == "domain"
        assert err.method == "createAccount"
        assert err.code == -32001

    def test_internal_error_is_transport_failure(self, fake_sut, session):
        fake_sut.fail("createAccount", -32603, "Internal error")

        with pytest.raises(TransportFailure) as exc_info:
            session.send("createAccount", {"key": "not-a-key"})

        err = exc_info.value
        assert err.code == TransportCode.INTERNAL_ERROR
        assert err.channel == "transport"
        assert not isinstance(err, DomainRejection)

    def test_invalid_params_code_is_kept(self, fake_sut, session):
        fake_sut.fail("createAccount", -32602, "Invalid params")

        with pytest.raises(TransportFailure) as exc_info:
            session.send("createAccount", {"key": 1})

        assert exc_info.value.code == TransportCode.INVALID_PARAMS

    def test_unknown_code_folds_into_internal_error(self, fake_sut, session):
        fake_sut.fail("createAccount", -32050, "Server error")

        with pytest.raises(TransportFailure) as exc_info:
            session.send("createAccount", {})

        assert exc_info.value.code == TransportCode.INTERNAL_ERROR

    def test_network_code_without_status_is_transport_failure(self, fake_sut, session):
        fake_sut.fail("createAccount", -32001, "Hiero error")

        with pytest.raises(TransportFailure):
            session.send("createAccount", {})

    def test_method_not_found_is_not_supported(self, session):
        with pytest.raises(OperationNotSupported) as exc_info:
            session.send("mintNothing")

        assert exc_info.value.code == TransportCode.METHOD_NOT_FOUND
        assert exc_info.value.method == "mintNothing"

    def test_not_implemented_result_is_not_supported(self, fake_sut, session):
        fake_sut.respond("createNode", {"error": "NOT_IMPLEMENTED"})

        with pytest.raises(OperationNotSupported):
            session.send("createNode", {})

    def test_errors_are_matchable(self, fake_sut, session):
        fake_sut.reject("createAccount", "INVALID_SIGNATURE")

        try:
            session.send("createAccount", {})
        except ControlPlaneError as err:
            match err:
                case DomainRejection("INVALID_SIGNATURE"):
                    matched = "domain"
                case TransportFailure():
                    matched = "transport"
                case _:
                    matched = None

        assert matched == "domain"


class TestTransportFailures:
    """Tests for failures raised before a JSON-RPC response is decoded."""

    def _client(self, handler) -> ControlPlaneClient:
        return ControlPlaneClient(SUT_URL, transport=httpx.MockTransport(handler))

    def test_connection_error_is_sut_unreachable(self):
        def handler(request):
            raise httpx.ConnectError("Connection refused", request=request)

        with self._client(handler) as client:
            with pytest.raises(TransportFailure) as exc_info:
                client.execute(OperationRequest(method="setup"))

        assert exc_info.value.code == TransportCode.SUT_UNREACHABLE

    def test_timeout_is_sut_unreachable(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with self._client(handler) as client:
            with pytest.raises(TransportFailure) as exc_info:
                client.execute(OperationRequest(method="setup"))

        assert exc_info.value.code == TransportCode.SUT_UNREACHABLE

    def test_http_error_status_is_internal_error(self):
        with self._client(lambda request: httpx.Response(502, text="Bad Gateway")) as client:
            with pytest.raises(TransportFailure) as exc_info:
                client.execute(OperationRequest(method="setup"))

        assert exc_info.value.code == TransportCode.INTERNAL_ERROR
        assert exc_info.value.details["http_status"] == 502

    def test_undecodable_body_is_parse_error(self):
        with self._client(lambda request: httpx.Response(200, text="<html>")) as client:
            with pytest.raises(TransportFailure) as exc_info:
                client.execute(OperationRequest(method="setup"))

        assert exc_info.value.code == TransportCode.PARSE_ERROR

    def test_corrupt_content_encoding_is_parse_error(self):
        def handler(request):
            return httpx.Response(
                200, content=b"not gzip at all", headers={"Content-Encoding": "gzip"}
            )

        with self._client(handler) as client:
            with pytest.raises(TransportFailure) as exc_info:
                client.execute(OperationRequest(method="setup"))

        assert exc_info.value.code == TransportCode.PARSE_ERROR

    def test_too_many_redirects_is_sut_unreachable(self):
        def handler(request):
            raise httpx.TooManyRedirects("Exceeded maximum allowed redirects", request=request)

        with self._client(handler) as client:
            with pytest.raises(TransportFailure) as exc_info:
                client.execute(OperationRequest(method="setup"))

        assert exc_info.value.code == TransportCode.SUT_UNREACHABLE

    def test_mismatched_response_id_is_invalid_request(self):
        def handler(request):
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": 999, "result": {}})

        with self._client(handler) as client:
            with pytest.raises(TransportFailure) as exc_info:
                client.execute(OperationRequest(method="setup"))

        assert exc_info.value.code == TransportCode.INVALID_REQUEST

    def test_failed_call_is_sent_exactly_once(self):
        """Operations have side effects, so the client never resends."""
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(
                200,
                json={"jsonrpc": "2.0", "id": 0, "error": {"code": -32603, "message": "boom"}},
            )

        with self._client(handler) as client:
            with pytest.raises(TransportFailure):
                client.execute(OperationRequest(method="createAccount"))

        assert len(requests) == 1


class TestStaleSession:
    def test_superseded_session_fails_locally(self, fake_sut, session_manager):
        old = session_manager.open()
        session_manager.open()
        before = len(fake_sut.requests)

        with pytest.raises(StaleSessionError) as exc_info:
            old.send("createAccount", {})

        assert exc_info.value.code == TransportCode.STALE_SESSION
        assert len(fake_sut.requests) == before

    def test_closed_session_fails_locally(self, fake_sut, session_manager):
        session = session_manager.open()
        session_manager.close(session)

        with pytest.raises(StaleSessionError):
            session.send("createAccount", {})
