"""
Ground-truth oracle - direct queries against consensus nodes.

The consensus network reflects every finalized operation immediately, so a
query issued after a successful control-plane call sees its effect
(read-your-writes). Use this client to establish what a test expects; the
mirror node is only ever checked against it.

The client talks to a ``ConsensusBackend``. The production backend wraps the
Hiero Python SDK; tests plug in an in-memory backend returning plain field
dicts.
"""

from __future__ import annotations

from typing import Any, Protocol

from tck.core.config import Settings, get_settings
from tck.core.exceptions import EntityNotFound, OracleUnavailable
from tck.core.logging import get_logger
from tck.schemas.entities import (
    SNAPSHOT_TYPES,
    AccountSnapshot,
    ContractSnapshot,
    EntityKind,
    EntityRef,
    EntitySnapshot,
    FileSnapshot,
    NftSnapshot,
    ReceiptSnapshot,
    ScheduleSnapshot,
    TokenSnapshot,
    TopicSnapshot,
)

logger = get_logger("consensus")

ORACLE_NAME = "consensus"

# Query statuses meaning "the network records this entity as absent"
NOT_FOUND_STATUSES = frozenset(
    {
        "INVALID_ACCOUNT_ID",
        "ACCOUNT_DELETED",
        "INVALID_TOKEN_ID",
        "TOKEN_WAS_DELETED",
        "INVALID_TOPIC_ID",
        "INVALID_CONTRACT_ID",
        "CONTRACT_DELETED",
        "INVALID_SCHEDULE_ID",
        "INVALID_FILE_ID",
        "FILE_DELETED",
        "INVALID_NFT_ID",
        "INVALID_TOKEN_NFT_SERIAL_NUMBER",
        "RECEIPT_NOT_FOUND",
        "INVALID_NODE_ID",
    }
)


class ConsensusStatusError(Exception):
    """A consensus query was answered with a non-OK status."""

    def __init__(self, status: str, message: str | None = None):
        self.status = status
        super().__init__(message or status)


class ConsensusBackend(Protocol):
    """Queries returning normalized field dicts.

    Keys match the snapshot models in ``tck.schemas.entities``. Failures
    raise ``ConsensusStatusError`` carrying the network status name.
    """

    def account_info(self, account_id: str) -> dict[str, Any]: ...

    def account_balance(self, account_id: str) -> dict[str, Any]: ...

    def token_info(self, token_id: str) -> dict[str, Any]: ...

    def nft_info(self, token_id: str, serial_number: int) -> dict[str, Any]: ...

    def topic_info(self, topic_id: str) -> dict[str, Any]: ...

    def contract_info(self, contract_id: str) -> dict[str, Any]: ...

    def schedule_info(self, schedule_id: str) -> dict[str, Any]: ...

    def file_info(self, file_id: str) -> dict[str, Any]: ...

    def file_contents(self, file_id: str) -> bytes: ...

    def node_info(self, node_id: int) -> dict[str, Any]: ...

    def transaction_receipt(self, transaction_id: str) -> dict[str, Any]: ...

    def close(self) -> None: ...


class ConsensusInfoClient:
    """
    Ground-truth oracle client.

    Usage:
        consensus = ConsensusInfoClient(SdkConsensusBackend.from_settings())
        account = consensus.get_account_info("0.0.1001")
        assert account.balance == 0
    """

    def __init__(self, backend: ConsensusBackend):
        self.backend = backend

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "ConsensusInfoClient":
        return cls(SdkConsensusBackend.from_settings(settings))

    def close(self) -> None:
        self.backend.close()

    # -------------------------------------------------------------------------
    # Generic entry point
    # -------------------------------------------------------------------------

    def query(self, ref: EntityRef) -> EntitySnapshot:
        """Current state of ``ref``; raises EntityNotFound if the network has none."""
        fetchers = {
            EntityKind.ACCOUNT: self.backend.account_info,
            EntityKind.TOKEN: self.backend.token_info,
            EntityKind.TOPIC: self.backend.topic_info,
            EntityKind.CONTRACT: self.backend.contract_info,
            EntityKind.SCHEDULE: self.backend.schedule_info,
            EntityKind.FILE: self.backend.file_info,
            EntityKind.NODE: lambda node_id: self.backend.node_info(int(node_id)),
        }
        fields = self._call(ref, fetchers[ref.kind], ref.entity_id)
        return SNAPSHOT_TYPES[ref.kind].model_validate({**fields, "raw": fields})

    # -------------------------------------------------------------------------
    # Typed accessors
    # -------------------------------------------------------------------------

    def get_account_info(self, account_id: str) -> AccountSnapshot:
        return self.query(EntityRef.account(account_id))  # type: ignore[return-value]

    def get_balance(self, account_id: str) -> int:
        """Hbar balance in tinybars."""
        ref = EntityRef.account(account_id)
        return int(self._call(ref, self.backend.account_balance, account_id)["balance"])

    def get_token_balances(self, account_id: str) -> dict[str, int]:
        ref = EntityRef.account(account_id)
        fields = self._call(ref, self.backend.account_balance, account_id)
        return {k: int(v) for k, v in (fields.get("token_balances") or {}).items()}

    def get_token_info(self, token_id: str) -> TokenSnapshot:
        return self.query(EntityRef.token(token_id))  # type: ignore[return-value]

    def get_token_nft_info(self, token_id: str, serial_number: int | str) -> NftSnapshot:
        ref = EntityRef.token(f"{token_id}/{serial_number}")
        fields = self._call(ref, self.backend.nft_info, token_id, int(serial_number))
        return NftSnapshot.model_validate(fields)

    def get_topic_info(self, topic_id: str) -> TopicSnapshot:
        return self.query(EntityRef.topic(topic_id))  # type: ignore[return-value]

    def get_contract_info(self, contract_id: str) -> ContractSnapshot:
        return self.query(EntityRef.contract(contract_id))  # type: ignore[return-value]

    def get_schedule_info(self, schedule_id: str) -> ScheduleSnapshot:
        return self.query(EntityRef.schedule(schedule_id))  # type: ignore[return-value]

    def get_file_info(self, file_id: str) -> FileSnapshot:
        return self.query(EntityRef.file(file_id))  # type: ignore[return-value]

    def get_file_contents(self, file_id: str) -> bytes:
        return self._call(EntityRef.file(file_id), self.backend.file_contents, file_id)

    def get_transaction_receipt(self, transaction_id: str) -> ReceiptSnapshot:
        """Receipt without status validation; failed transactions return their status."""
        fields = self._call(
            transaction_id, self.backend.transaction_receipt, transaction_id
        )
        return ReceiptSnapshot.model_validate({"transaction_id": transaction_id, **fields})

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _call(self, ref: Any, fetch, *args):
        try:
            return fetch(*args)
        except ConsensusStatusError as e:
            if e.status in NOT_FOUND_STATUSES:
                logger.debug(f"{ref} absent on consensus: {e.status}")
                raise EntityNotFound(ref, ORACLE_NAME, e.status) from e
            logger.warning(f"Consensus query for {ref} failed: {e.status}")
            raise OracleUnavailable(ORACLE_NAME, f"{ref}: {e}") from e


# =============================================================================
# Hiero SDK backend
# =============================================================================

# Harness network names -> SDK network names
SDK_NETWORKS = {"local": "localhost", "testnet": "testnet"}


def _attr(obj: Any, *names: str, default: Any = None) -> Any:
    """First attribute present on ``obj`` among ``names`` (SDK releases differ)."""
    for name in names:
        value = getattr(obj, name, None)
        if value is not None:
            return value
    return default


def _id(value: Any) -> str | None:
    return str(value) if value is not None else None


def _seconds(value: Any) -> int | None:
    if value is None:
        return None
    return int(_attr(value, "seconds", default=value))


def _tinybars(value: Any) -> int | None:
    if value is None:
        return None
    to_tinybars = getattr(value, "to_tinybars", None)
    return int(to_tinybars()) if to_tinybars else int(value)


def _enum_name(value: Any) -> str | None:
    if value is None:
        return None
    return str(getattr(value, "name", value)).upper()


def _raw_public_key(key: Any) -> str | None:
    """Raw hex of a single public key; key lists have no raw form."""
    to_string_raw = getattr(key, "to_string_raw", None)
    return to_string_raw() if to_string_raw else None


def _staked_node(value: Any) -> int | None:
    # The SDK reports "not staked to a node" as -1
    if value is None or int(value) < 0:
        return None
    return int(value)


def _staking_fields(info: Any) -> dict[str, Any]:
    """Staking settings live on the nested ``staking_info``."""
    staking = _attr(info, "staking_info")
    return {
        "staked_account_id": _id(_attr(staking, "staked_account_id")),
        "staked_node_id": _staked_node(_attr(staking, "staked_node_id")),
        "decline_staking_reward": _attr(staking, "decline_reward"),
    }


# TokenFreezeStatus / TokenPauseStatus names -> snapshot booleans
FREEZE_DEFAULTS = {"FROZEN": True, "UNFROZEN": False}
PAUSE_STATUSES = {"PAUSED": True, "UNPAUSED": False}


class SdkConsensusBackend:
    """ConsensusBackend on top of ``hiero-sdk-python`` (``consensus`` extra)."""

    def __init__(self, client: Any):
        import hiero_sdk_python as sdk

        self._sdk = sdk
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "SdkConsensusBackend":
        import hiero_sdk_python as sdk

        settings = settings or get_settings()
        network = cls._network(sdk, settings)
        client = sdk.Client(network)
        client.set_operator(
            sdk.AccountId.from_string(settings.operator_account_id),
            sdk.PrivateKey.from_string(settings.operator_account_private_key),
        )
        logger.info(f"Consensus client ready on {settings.network}")
        return cls(client)

    @staticmethod
    def _network(sdk: Any, settings: Settings) -> Any:
        """SDK network preset, or the configured local node when one is set."""
        if not (settings.node_ip and settings.node_account_id):
            return sdk.Network(network=SDK_NETWORKS[settings.network])

        from hiero_sdk_python.node import _Node

        node = _Node(sdk.AccountId.from_string(settings.node_account_id), settings.node_ip, None)
        return sdk.Network(
            network=SDK_NETWORKS[settings.network],
            nodes=[node],
            mirror_address=settings.mirror_network,
        )

    def close(self) -> None:
        close = getattr(self._client, "close", None)
        if close:
            close()

    def _execute(self, query: Any) -> Any:
        from hiero_sdk_python.exceptions import PrecheckError, ReceiptStatusError

        try:
            return query.execute(self._client)
        except (PrecheckError, ReceiptStatusError) as e:
            raise ConsensusStatusError(self._status_name(getattr(e, "status", None)), str(e)) from e

    def _status_name(self, status: Any) -> str:
        if status is None:
            return "UNKNOWN"
        if isinstance(status, int) and not hasattr(status, "name"):
            try:
                return self._sdk.ResponseCode(status).name
            except ValueError:
                return str(status)
        return _enum_name(status)

    def account_info(self, account_id: str) -> dict[str, Any]:
        sdk = self._sdk
        info = self._execute(
            sdk.AccountInfoQuery().set_account_id(sdk.AccountId.from_string(account_id))
        )
        return {
            "account_id": _id(info.account_id),
            "balance": _tinybars(info.balance),
            "memo": _attr(info, "account_memo", "memo"),
            "receiver_signature_required": _attr(
                info, "receiver_signature_required", "is_receiver_signature_required"
            ),
            "max_automatic_token_associations": _attr(info, "max_automatic_token_associations"),
            "auto_renew_period": _seconds(_attr(info, "auto_renew_period")),
            **_staking_fields(info),
            "deleted": bool(_attr(info, "is_deleted", "deleted", default=False)),
            "public_key": _raw_public_key(_attr(info, "key")),
        }

    def account_balance(self, account_id: str) -> dict[str, Any]:
        sdk = self._sdk
        balance = self._execute(
            sdk.CryptoGetAccountBalanceQuery().set_account_id(
                sdk.AccountId.from_string(account_id)
            )
        )
        tokens = _attr(balance, "token_balances", "tokens", default={})
        return {
            "balance": _tinybars(_attr(balance, "hbars", "hbar")),
            "token_balances": {str(k): int(v) for k, v in tokens.items()},
        }

    def token_info(self, token_id: str) -> dict[str, Any]:
        sdk = self._sdk
        info = self._execute(
            sdk.TokenInfoQuery().set_token_id(sdk.TokenId.from_string(token_id))
        )
        return {
            "token_id": _id(info.token_id),
            "name": info.name,
            "symbol": info.symbol,
            "decimals": _attr(info, "decimals"),
            "total_supply": _attr(info, "total_supply"),
            "treasury_account_id": _id(_attr(info, "treasury", "treasury_account_id")),
            "memo": _attr(info, "memo", "token_memo"),
            "token_type": _enum_name(_attr(info, "token_type")),
            "supply_type": _enum_name(_attr(info, "supply_type")),
            "max_supply": _attr(info, "max_supply"),
            "freeze_default": FREEZE_DEFAULTS.get(_enum_name(_attr(info, "default_freeze_status"))),
            "paused": PAUSE_STATUSES.get(_enum_name(_attr(info, "pause_status"))),
            "deleted": bool(_attr(info, "is_deleted", "deleted", default=False)),
        }

    def nft_info(self, token_id: str, serial_number: int) -> dict[str, Any]:
        sdk = self._sdk
        nft_id = sdk.NftId(sdk.TokenId.from_string(token_id), serial_number)
        info = self._execute(sdk.TokenNftInfoQuery().set_nft_id(nft_id))
        metadata = _attr(info, "metadata")
        return {
            "token_id": token_id,
            "serial_number": serial_number,
            "account_id": _id(_attr(info, "account_id")),
            "metadata": metadata.hex() if isinstance(metadata, bytes) else metadata,
            "spender_id": _id(_attr(info, "spender_id")),
        }

    def topic_info(self, topic_id: str) -> dict[str, Any]:
        sdk = self._sdk
        info = self._execute(
            sdk.TopicInfoQuery().set_topic_id(sdk.TopicId.from_string(topic_id))
        )
        return {
            "topic_id": topic_id,
            "memo": _attr(info, "memo", "topic_memo"),
            "auto_renew_account_id": _id(_attr(info, "auto_renew_account")),
            "auto_renew_period": _seconds(_attr(info, "auto_renew_period")),
            "deleted": False,
        }

    def contract_info(self, contract_id: str) -> dict[str, Any]:
        sdk = self._sdk
        info = self._execute(
            sdk.ContractInfoQuery().set_contract_id(sdk.ContractId.from_string(contract_id))
        )
        return {
            "contract_id": _id(_attr(info, "contract_id", default=contract_id)),
            "memo": _attr(info, "contract_memo", "memo"),
            "auto_renew_account_id": _id(_attr(info, "auto_renew_account_id")),
            "auto_renew_period": _seconds(_attr(info, "auto_renew_period")),
            "max_automatic_token_associations": _attr(info, "max_automatic_token_associations"),
            **_staking_fields(info),
            "deleted": bool(_attr(info, "is_deleted", "deleted", default=False)),
        }

    def schedule_info(self, schedule_id: str) -> dict[str, Any]:
        sdk = self._sdk
        info = self._execute(
            sdk.ScheduleInfoQuery().set_schedule_id(sdk.ScheduleId.from_string(schedule_id))
        )
        return {
            "schedule_id": schedule_id,
            "memo": _attr(info, "schedule_memo", "memo"),
            "creator_account_id": _id(_attr(info, "creator_account_id")),
            "payer_account_id": _id(_attr(info, "payer_account_id")),
            "executed": _attr(info, "executed_at") is not None,
            "deleted": _attr(info, "deleted_at") is not None,
            "wait_for_expiry": _attr(info, "wait_for_expiry"),
        }

    def file_info(self, file_id: str) -> dict[str, Any]:
        sdk = self._sdk
        info = self._execute(
            sdk.FileInfoQuery().set_file_id(sdk.FileId.from_string(file_id))
        )
        return {
            "file_id": file_id,
            "size": _attr(info, "size"),
            "memo": _attr(info, "file_memo", "memo"),
            "deleted": bool(_attr(info, "is_deleted", "deleted", default=False)),
        }

    def file_contents(self, file_id: str) -> bytes:
        sdk = self._sdk
        return self._execute(
            sdk.FileContentsQuery().set_file_id(sdk.FileId.from_string(file_id))
        )

    def node_info(self, node_id: int) -> dict[str, Any]:
        raise ConsensusStatusError(
            "NOT_SUPPORTED", "Node address book lookups go through the mirror node"
        )

    def transaction_receipt(self, transaction_id: str) -> dict[str, Any]:
        sdk = self._sdk
        receipt = self._execute(
            sdk.TransactionGetReceiptQuery().set_transaction_id(
                sdk.TransactionId.from_string(transaction_id)
            )
        )
        return {
            "status": self._status_name(receipt.status),
            "account_id": _id(_attr(receipt, "account_id")),
            "token_id": _id(_attr(receipt, "token_id")),
            "topic_id": _id(_attr(receipt, "topic_id")),
            "contract_id": _id(_attr(receipt, "contract_id")),
            "schedule_id": _id(_attr(receipt, "schedule_id")),
            "file_id": _id(_attr(receipt, "file_id")),
            "serial_numbers": list(_attr(receipt, "serial_numbers", default=[])),
        }
