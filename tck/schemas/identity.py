"""Operator identity schema."""

from __future__ import annotations

import re

from pydantic import BaseModel, ConfigDict, Field, field_validator


ENTITY_ID_PATTERN = re.compile(r"^\d+\.\d+\.\d+$")


def is_entity_id(value: str) -> bool:
    """True for ``shard.realm.num`` identifiers such as ``0.0.1234``."""
    return bool(ENTITY_ID_PATTERN.match(value))


class OperatorIdentity(BaseModel):
    """Account that signs and pays for operations by default."""

    model_config = ConfigDict(frozen=True)

    account_id: str = Field(..., description="Operator account id (shard.realm.num)")
    private_key: str = Field(
        ..., repr=False, description="DER-encoded private key, hex"
    )

    @field_validator("account_id")
    @classmethod
    def validate_account_id(cls, v: str) -> str:
        v = v.strip()
        if not is_entity_id(v):
            raise ValueError(f"account_id must look like shard.realm.num, got {v!r}")
        return v

    def to_setup_params(self) -> dict[str, str]:
        return {
            "operatorAccountId": self.account_id,
            "operatorPrivateKey": self.private_key,
        }
