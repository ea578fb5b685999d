"""Pydantic schemas for control-plane messages and oracle snapshots."""

from .entities import (
    AccountSnapshot,
    ContractSnapshot,
    EntityKind,
    EntityRef,
    EntitySnapshot,
    FileSnapshot,
    NftSnapshot,
    NodeSnapshot,
    ReceiptSnapshot,
    ScheduleSnapshot,
    TokenSnapshot,
    TopicSnapshot,
)
from .identity import OperatorIdentity, is_entity_id
from .rpc import CallOverrides, OperationRequest, OperationResult


__all__ = [
    "AccountSnapshot",
    "CallOverrides",
    "ContractSnapshot",
    "EntityKind",
    "EntityRef",
    "EntitySnapshot",
    "FileSnapshot",
    "NftSnapshot",
    "NodeSnapshot",
    "OperationRequest",
    "OperationResult",
    "OperatorIdentity",
    "ReceiptSnapshot",
    "ScheduleSnapshot",
    "TokenSnapshot",
    "TopicSnapshot",
    "is_entity_id",
]
