"""Entity references and oracle snapshots.

Both oracles normalize their answers into these models so that the same
field names carry the same meaning on either side. A field left as ``None``
is one the oracle does not expose; comparisons only look at fields that both
snapshots populate.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, ClassVar, Dict, Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field


class EntityKind(str, Enum):
    """Kinds of ledger entity an oracle query can target."""

    ACCOUNT = "account"
    CONTRACT = "contract"
    TOKEN = "token"
    TOPIC = "topic"
    SCHEDULE = "schedule"
    NODE = "node"
    FILE = "file"


class EntityRef(BaseModel):
    """Typed reference to a ledger entity, e.g. ``EntityRef.account("0.0.1001")``."""

    model_config = ConfigDict(frozen=True)

    kind: EntityKind
    entity_id: str

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.entity_id}"

    @classmethod
    def account(cls, entity_id: str) -> "EntityRef":
        return cls(kind=EntityKind.ACCOUNT, entity_id=entity_id)

    @classmethod
    def contract(cls, entity_id: str) -> "EntityRef":
        return cls(kind=EntityKind.CONTRACT, entity_id=entity_id)

    @classmethod
    def token(cls, entity_id: str) -> "EntityRef":
        return cls(kind=EntityKind.TOKEN, entity_id=entity_id)

    @classmethod
    def topic(cls, entity_id: str) -> "EntityRef":
        return cls(kind=EntityKind.TOPIC, entity_id=entity_id)

    @classmethod
    def schedule(cls, entity_id: str) -> "EntityRef":
        return cls(kind=EntityKind.SCHEDULE, entity_id=entity_id)

    @classmethod
    def node(cls, node_id: int | str) -> "EntityRef":
        return cls(kind=EntityKind.NODE, entity_id=str(node_id))

    @classmethod
    def file(cls, entity_id: str) -> "EntityRef":
        return cls(kind=EntityKind.FILE, entity_id=entity_id)


class EntitySnapshot(BaseModel):
    """Common base for normalized snapshots."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    kind: ClassVar[EntityKind]
    # Raw oracle payload, kept for ad hoc assertions on unnormalized fields
    raw: Dict[str, Any] = Field(default_factory=dict, repr=False, exclude=True)

    @property
    def entity_id(self) -> str:
        raise NotImplementedError

    def exposed_fields(self) -> Dict[str, Any]:
        """Populated fields, excluding the raw payload."""
        return {k: v for k, v in self.model_dump().items() if v is not None}

    def diff(
        self, other: "EntitySnapshot", fields: Iterable[str] | None = None
    ) -> Dict[str, tuple[Any, Any]]:
        """Fields whose values disagree between two snapshots.

        Without ``fields`` only fields populated on both sides are compared.
        Explicitly requested fields are always compared.
        """
        mine = self.model_dump()
        theirs = other.model_dump()
        if fields is None:
            names = [
                name
                for name in mine
                if mine[name] is not None and theirs.get(name) is not None
            ]
        else:
            names = list(fields)
        return {
            name: (mine.get(name), theirs.get(name))
            for name in names
            if mine.get(name) != theirs.get(name)
        }


class AccountSnapshot(EntitySnapshot):
    kind: ClassVar[EntityKind] = EntityKind.ACCOUNT

    account_id: str
    balance: Optional[int] = Field(default=None, description="Tinybars")
    memo: Optional[str] = None
    receiver_signature_required: Optional[bool] = None
    max_automatic_token_associations: Optional[int] = None
    auto_renew_period: Optional[int] = Field(default=None, description="Seconds")
    staked_account_id: Optional[str] = None
    staked_node_id: Optional[int] = None
    decline_staking_reward: Optional[bool] = None
    deleted: Optional[bool] = None
    # Raw public key hex for single keys; None for key lists
    public_key: Optional[str] = None
    token_balances: Optional[Dict[str, int]] = None

    @property
    def entity_id(self) -> str:
        return self.account_id


class TokenSnapshot(EntitySnapshot):
    kind: ClassVar[EntityKind] = EntityKind.TOKEN

    token_id: str
    name: Optional[str] = None
    symbol: Optional[str] = None
    decimals: Optional[int] = None
    total_supply: Optional[int] = None
    treasury_account_id: Optional[str] = None
    memo: Optional[str] = None
    token_type: Optional[str] = Field(
        default=None, description="FUNGIBLE_COMMON or NON_FUNGIBLE_UNIQUE"
    )
    supply_type: Optional[str] = Field(default=None, description="FINITE or INFINITE")
    max_supply: Optional[int] = None
    freeze_default: Optional[bool] = None
    paused: Optional[bool] = None
    deleted: Optional[bool] = None

    @property
    def entity_id(self) -> str:
        return self.token_id


class TopicSnapshot(EntitySnapshot):
    kind: ClassVar[EntityKind] = EntityKind.TOPIC

    topic_id: str
    memo: Optional[str] = None
    auto_renew_account_id: Optional[str] = None
    auto_renew_period: Optional[int] = None
    deleted: Optional[bool] = None

    @property
    def entity_id(self) -> str:
        return self.topic_id


class ContractSnapshot(EntitySnapshot):
    kind: ClassVar[EntityKind] = EntityKind.CONTRACT

    contract_id: str
    memo: Optional[str] = None
    auto_renew_account_id: Optional[str] = None
    auto_renew_period: Optional[int] = None
    max_automatic_token_associations: Optional[int] = None
    staked_account_id: Optional[str] = None
    staked_node_id: Optional[int] = None
    decline_staking_reward: Optional[bool] = None
    deleted: Optional[bool] = None

    @property
    def entity_id(self) -> str:
        return self.contract_id


class ScheduleSnapshot(EntitySnapshot):
    kind: ClassVar[EntityKind] = EntityKind.SCHEDULE

    schedule_id: str
    memo: Optional[str] = None
    creator_account_id: Optional[str] = None
    payer_account_id: Optional[str] = None
    executed: Optional[bool] = None
    deleted: Optional[bool] = None
    wait_for_expiry: Optional[bool] = None

    @property
    def entity_id(self) -> str:
        return self.schedule_id


class NodeSnapshot(EntitySnapshot):
    kind: ClassVar[EntityKind] = EntityKind.NODE

    node_id: int
    node_account_id: Optional[str] = None
    description: Optional[str] = None

    @property
    def entity_id(self) -> str:
        return str(self.node_id)


class FileSnapshot(EntitySnapshot):
    kind: ClassVar[EntityKind] = EntityKind.FILE

    file_id: str
    size: Optional[int] = None
    memo: Optional[str] = None
    deleted: Optional[bool] = None

    @property
    def entity_id(self) -> str:
        return self.file_id


class NftSnapshot(BaseModel):
    """Ownership record of one NFT serial."""

    model_config = ConfigDict(frozen=True)

    token_id: str
    serial_number: int
    account_id: Optional[str] = None
    metadata: Optional[str] = None
    spender_id: Optional[str] = None
    deleted: Optional[bool] = None


class ReceiptSnapshot(BaseModel):
    """Receipt of a transaction as reported by the ground truth."""

    model_config = ConfigDict(frozen=True)

    transaction_id: str
    status: str
    account_id: Optional[str] = None
    token_id: Optional[str] = None
    topic_id: Optional[str] = None
    contract_id: Optional[str] = None
    schedule_id: Optional[str] = None
    file_id: Optional[str] = None
    serial_numbers: list[int] = Field(default_factory=list)


SNAPSHOT_TYPES: Dict[EntityKind, type[EntitySnapshot]] = {
    EntityKind.ACCOUNT: AccountSnapshot,
    EntityKind.CONTRACT: ContractSnapshot,
    EntityKind.TOKEN: TokenSnapshot,
    EntityKind.TOPIC: TopicSnapshot,
    EntityKind.SCHEDULE: ScheduleSnapshot,
    EntityKind.NODE: NodeSnapshot,
    EntityKind.FILE: FileSnapshot,
}
