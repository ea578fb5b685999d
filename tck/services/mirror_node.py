"""
Read-replica oracle - the mirror node REST API.

The mirror node ingests the record stream after consensus, so its view of an
entity can lag by seconds. Nothing here waits for it: wrap assertions against
this client in ``retry_until_consistent`` and only after the ground truth (or
the operation result) has established what to expect.
"""

from __future__ import annotations

import base64
from typing import Any

import httpx

from tck.core.config import Settings, get_settings
from tck.core.exceptions import EntityNotFound, OracleUnavailable
from tck.core.logging import get_logger
from tck.schemas.entities import (
    AccountSnapshot,
    ContractSnapshot,
    EntityKind,
    EntityRef,
    EntitySnapshot,
    NftSnapshot,
    NodeSnapshot,
    ScheduleSnapshot,
    TokenSnapshot,
    TopicSnapshot,
)

logger = get_logger("mirror_node")

ORACLE_NAME = "mirror_node"

PAUSE_STATUSES = {"PAUSED": True, "UNPAUSED": False}


def _int(value: Any) -> int | None:
    """Mirror node serializes large numbers as strings."""
    if value is None or value == "":
        return None
    return int(value)


def _metadata_hex(value: str | None) -> str | None:
    """Mirror node serves NFT metadata base64-encoded; snapshots carry hex."""
    if value is None:
        return None
    return base64.b64decode(value).hex()


def _key_hex(key: dict[str, Any] | None) -> str | None:
    if not key or key.get("_type") not in ("ED25519", "ECDSA_SECP256K1"):
        return None
    return str(key.get("key", "")).lower() or None


class MirrorNodeClient:
    """
    Read-replica oracle client.

    Usage:
        mirror = MirrorNodeClient.from_settings()
        account = mirror.get_account("0.0.1001")
        raw = mirror.get_account_data("0.0.1001")  # unnormalized JSON
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._http = httpx.Client(
            base_url=f"{self.base_url}/api/v1",
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> "MirrorNodeClient":
        settings = settings or get_settings()
        return cls(
            settings.mirror_node_rest_url,
            timeout=settings.http_timeout,
            transport=transport,
        )

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "MirrorNodeClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # -------------------------------------------------------------------------
    # Normalized snapshots
    # -------------------------------------------------------------------------

    def query(self, ref: EntityRef) -> EntitySnapshot:
        """Replicated state of ``ref``; raises EntityNotFound on 404."""
        normalizers = {
            EntityKind.ACCOUNT: self.get_account,
            EntityKind.TOKEN: self.get_token,
            EntityKind.TOPIC: self.get_topic,
            EntityKind.CONTRACT: self.get_contract,
            EntityKind.SCHEDULE: self.get_schedule,
            EntityKind.NODE: self.get_node,
        }
        if ref.kind not in normalizers:
            raise OracleUnavailable(ORACLE_NAME, f"{ref.kind.value} is not indexed")
        return normalizers[ref.kind](ref.entity_id)

    def get_account(self, account_id: str) -> AccountSnapshot:
        data = self.get_account_data(account_id)
        balance = data.get("balance") or {}
        return AccountSnapshot(
            account_id=data["account"],
            balance=_int(balance.get("balance")),
            memo=data.get("memo"),
            receiver_signature_required=data.get("receiver_sig_required"),
            max_automatic_token_associations=data.get("max_automatic_token_associations"),
            auto_renew_period=_int(data.get("auto_renew_period")),
            staked_account_id=data.get("staked_account_id"),
            staked_node_id=data.get("staked_node_id"),
            decline_staking_reward=data.get("decline_reward"),
            deleted=data.get("deleted"),
            public_key=_key_hex(data.get("key")),
            token_balances={
                t["token_id"]: int(t["balance"]) for t in balance.get("tokens") or []
            },
            raw=data,
        )

    def get_token(self, token_id: str) -> TokenSnapshot:
        data = self.get_token_data(token_id)
        return TokenSnapshot(
            token_id=data["token_id"],
            name=data.get("name"),
            symbol=data.get("symbol"),
            decimals=_int(data.get("decimals")),
            total_supply=_int(data.get("total_supply")),
            treasury_account_id=data.get("treasury_account_id"),
            memo=data.get("memo"),
            token_type=data.get("type"),
            supply_type=data.get("supply_type"),
            max_supply=_int(data.get("max_supply")),
            freeze_default=data.get("freeze_default"),
            paused=PAUSE_STATUSES.get(data.get("pause_status")),
            deleted=data.get("deleted"),
            raw=data,
        )

    def get_topic(self, topic_id: str) -> TopicSnapshot:
        data = self.get_topic_data(topic_id)
        return TopicSnapshot(
            topic_id=data["topic_id"],
            memo=data.get("memo"),
            auto_renew_account_id=data.get("auto_renew_account"),
            auto_renew_period=_int(data.get("auto_renew_period")),
            deleted=data.get("deleted"),
            raw=data,
        )

    def get_contract(self, contract_id: str) -> ContractSnapshot:
        data = self.get_contract_data(contract_id)
        return ContractSnapshot(
            contract_id=data["contract_id"],
            memo=data.get("memo"),
            auto_renew_account_id=data.get("auto_renew_account"),
            auto_renew_period=_int(data.get("auto_renew_period")),
            max_automatic_token_associations=data.get("max_automatic_token_associations"),
            staked_account_id=data.get("staked_account_id"),
            staked_node_id=data.get("staked_node_id"),
            decline_staking_reward=data.get("decline_reward"),
            deleted=data.get("deleted"),
            raw=data,
        )

    def get_schedule(self, schedule_id: str) -> ScheduleSnapshot:
        data = self.get_schedule_data(schedule_id)
        return ScheduleSnapshot(
            schedule_id=data["schedule_id"],
            memo=data.get("memo"),
            creator_account_id=data.get("creator_account_id"),
            payer_account_id=data.get("payer_account_id"),
            executed=data.get("executed_timestamp") is not None,
            deleted=data.get("deleted"),
            wait_for_expiry=data.get("wait_for_expiry"),
            raw=data,
        )

    def get_node(self, node_id: int | str) -> NodeSnapshot:
        ref = EntityRef.node(node_id)
        nodes = self._get(ref, "/network/nodes", params={"node.id": f"eq:{node_id}"})
        matches = nodes.get("nodes") or []
        if not matches:
            raise EntityNotFound(ref, ORACLE_NAME)
        data = matches[0]
        return NodeSnapshot(
            node_id=data["node_id"],
            node_account_id=data.get("node_account_id"),
            description=data.get("description"),
            raw=data,
        )

    def get_nft(self, token_id: str, serial_number: int | str) -> NftSnapshot:
        ref = EntityRef.token(f"{token_id}/{serial_number}")
        data = self._get(ref, f"/tokens/{token_id}/nfts/{serial_number}")
        return NftSnapshot(
            token_id=data["token_id"],
            serial_number=int(data["serial_number"]),
            account_id=data.get("account_id"),
            metadata=_metadata_hex(data.get("metadata")),
            spender_id=data.get("spender"),
            deleted=data.get("deleted"),
        )

    # -------------------------------------------------------------------------
    # Raw endpoints
    # -------------------------------------------------------------------------

    def get_account_data(self, account_id: str) -> dict[str, Any]:
        return self._get(EntityRef.account(account_id), f"/accounts/{account_id}")

    def get_balance_data(self, account_id: str | None = None) -> dict[str, Any]:
        params = {"account.id": account_id} if account_id else None
        return self._get("balances", "/balances", params=params)

    def get_token_data(self, token_id: str) -> dict[str, Any]:
        return self._get(EntityRef.token(token_id), f"/tokens/{token_id}")

    def get_account_nfts(self, account_id: str, token_id: str | None = None) -> dict[str, Any]:
        params = {"token.id": token_id} if token_id else None
        return self._get(
            EntityRef.account(account_id), f"/accounts/{account_id}/nfts", params=params
        )

    def get_hbar_allowances(self, account_id: str) -> dict[str, Any]:
        return self._get(
            EntityRef.account(account_id), f"/accounts/{account_id}/allowances/crypto"
        )

    def get_token_allowances(self, account_id: str) -> dict[str, Any]:
        return self._get(
            EntityRef.account(account_id), f"/accounts/{account_id}/allowances/tokens"
        )

    def get_nft_allowances(self, account_id: str) -> dict[str, Any]:
        return self._get(
            EntityRef.account(account_id), f"/accounts/{account_id}/allowances/nfts"
        )

    def get_outgoing_token_airdrops(self, account_id: str) -> dict[str, Any]:
        return self._get(
            EntityRef.account(account_id), f"/accounts/{account_id}/airdrops/outstanding"
        )

    def get_incoming_token_airdrops(self, account_id: str) -> dict[str, Any]:
        return self._get(
            EntityRef.account(account_id), f"/accounts/{account_id}/airdrops/pending"
        )

    def get_topic_data(self, topic_id: str) -> dict[str, Any]:
        return self._get(EntityRef.topic(topic_id), f"/topics/{topic_id}")

    def get_topic_messages(self, topic_id: str) -> dict[str, Any]:
        return self._get(EntityRef.topic(topic_id), f"/topics/{topic_id}/messages")

    def get_contract_data(self, contract_id: str) -> dict[str, Any]:
        return self._get(EntityRef.contract(contract_id), f"/contracts/{contract_id}")

    def get_schedule_data(self, schedule_id: str) -> dict[str, Any]:
        return self._get(EntityRef.schedule(schedule_id), f"/schedules/{schedule_id}")

    def get_transaction_data(self, transaction_id: str) -> dict[str, Any]:
        return self._get(transaction_id, f"/transactions/{transaction_id}")

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _get(
        self, ref: Any, path: str, params: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        try:
            response = self._http.get(path, params=params)
        except httpx.RequestError as e:
            logger.warning(f"Mirror node unreachable for {ref}: {e}")
            raise OracleUnavailable(ORACLE_NAME, str(e)) from e

        if response.status_code == 404:
            logger.debug(f"{ref} not (yet) on mirror node")
            raise EntityNotFound(ref, ORACLE_NAME)
        if response.status_code >= 400:
            raise OracleUnavailable(
                ORACLE_NAME, f"HTTP {response.status_code} for {path}"
            )

        try:
            data = response.json()
        except ValueError as e:
            raise OracleUnavailable(ORACLE_NAME, f"Undecodable body for {path}") from e
        if not data:
            raise OracleUnavailable(ORACLE_NAME, f"No data received for {path}")
        return data
