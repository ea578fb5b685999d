"""Key helpers: DER decoding and key comparison across oracles.

The SUT exchanges keys as DER-encoded hex strings. The mirror node reports
single keys as ``{"_type": "ED25519" | "ECDSA_SECP256K1", "key": <raw hex>}``
and the consensus SDK exposes raw public keys. These helpers reduce all of
them to the raw key bytes so they can be compared.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class KeyType(str, Enum):
    """Key types understood by the SUT's ``generateKey`` method."""

    ED25519_PRIVATE = "ed25519PrivateKey"
    ED25519_PUBLIC = "ed25519PublicKey"
    ECDSA_SECP256K1_PRIVATE = "ecdsaSecp256k1PrivateKey"
    ECDSA_SECP256K1_PUBLIC = "ecdsaSecp256k1PublicKey"
    KEY_LIST = "keyList"
    THRESHOLD_KEY = "thresholdKey"
    EVM_ADDRESS = "evmAddress"


OID_ALGORITHMS = {
    "1.3.101.112": "ed25519",
    "1.3.132.0.10": "ecdsa",
    "1.2.840.10045.2.1": "pubkey",
}

# Mirror node key ``_type`` per algorithm
MIRROR_KEY_TYPES = {
    "ED25519": "ed25519",
    "ECDSA_SECP256K1": "ecdsa",
}


class KeyDecodeError(ValueError):
    """Input is not a DER structure this decoder understands."""


@dataclass
class _DerReader:
    """Minimal DER walker for the key structures the SUT produces."""

    data: bytes
    pos: int = 0
    oids: list[str] = field(default_factory=list)

    def _byte(self) -> int:
        if self.pos >= len(self.data):
            raise KeyDecodeError("Truncated DER input")
        value = self.data[self.pos]
        self.pos += 1
        return value

    def _length(self) -> int:
        length = self._byte()
        if length & 0x80:
            num_bytes = length & 0x7F
            length = 0
            for _ in range(num_bytes):
                length = (length << 8) | self._byte()
        return length

    def _take(self, length: int) -> bytes:
        end = self.pos + length
        if end > len(self.data):
            raise KeyDecodeError("DER element overruns input")
        value = self.data[self.pos:end]
        self.pos = end
        return value

    def _oid(self, length: int) -> str:
        body = self._take(length)
        if not body:
            raise KeyDecodeError("Empty OID")
        parts = [body[0] // 40, body[0] % 40]
        value = 0
        for byte in body[1:]:
            value = (value << 7) | (byte & 0x7F)
            if not byte & 0x80:
                parts.append(value)
                value = 0
        oid = ".".join(str(p) for p in parts)
        self.oids.append(oid)
        return oid

    def read(self) -> Any:
        tag = self._byte()
        length = self._length()
        if tag == 0x02:  # INTEGER
            return int.from_bytes(self._take(length), "big")
        if tag == 0x03:  # BIT STRING
            body = self._take(length)
            return ("bits", body[1:])
        if tag == 0x04:  # OCTET STRING
            return ("octets", self._take(length))
        if tag == 0x06:
            return self._oid(length)
        if tag in (0x30, 0xA0, 0xA1):  # SEQUENCE and context-specific wrappers
            end = self.pos + length
            items = []
            while self.pos < end:
                items.append(self.read())
            return items
        raise KeyDecodeError(f"Unsupported DER tag 0x{tag:02x}")


def _walk(der_hex: str) -> tuple[list[Any], list[str]]:
    try:
        data = bytes.fromhex(der_hex.removeprefix("0x"))
    except ValueError as e:
        raise KeyDecodeError(f"Not a hex string: {e}") from e
    reader = _DerReader(data)
    root = reader.read()
    if not isinstance(root, list):
        raise KeyDecodeError("DER key must be a SEQUENCE")
    return root, reader.oids


def _find_key(items: list[Any]) -> bytes | None:
    for item in items:
        if isinstance(item, tuple):
            kind, body = item
            if kind == "bits":
                return body
            # PKCS#8 wraps the private key in a second OCTET STRING
            if len(body) >= 2 and body[0] == 0x04 and body[1] == len(body) - 2:
                return body[2:]
            return body
        if isinstance(item, list):
            found = _find_key(item)
            if found is not None:
                return found
    return None


def raw_key_from_der(der_hex: str) -> str:
    """Raw key bytes (hex) from a DER-encoded public or private key."""
    items, _ = _walk(der_hex)
    key = _find_key(items)
    if key is None:
        raise KeyDecodeError("No key found in the provided data")
    return key.hex()


def key_algorithm_from_der(der_hex: str) -> str:
    """``ed25519`` or ``ecdsa`` based on the algorithm OIDs in the DER input."""
    _, oids = _walk(der_hex)
    for oid in oids:
        algorithm = OID_ALGORITHMS.get(oid)
        if algorithm in ("ed25519", "ecdsa"):
            return algorithm
    raise KeyDecodeError(f"Unknown key algorithm (OIDs: {oids})")


def is_private_der(der_hex: str) -> bool:
    """Private keys carry an OCTET STRING where public keys carry a BIT STRING."""
    items, _ = _walk(der_hex)
    return not any(isinstance(i, tuple) and i[0] == "bits" for i in items)


def mirror_key_matches(mirror_key: dict[str, Any] | None, der_hex: str) -> bool:
    """Compare a mirror node key object with a DER-encoded public key.

    Key lists (``ProtobufEncoded``) are compared by suffix, since the SUT's
    encoding prefixes the protobuf bytes with a field tag.
    """
    if mirror_key is None:
        return False
    key_type = mirror_key.get("_type")
    mirror_hex = str(mirror_key.get("key", "")).lower()
    if key_type == "ProtobufEncoded":
        return bool(mirror_hex) and der_hex.lower().endswith(mirror_hex)
    if key_type not in MIRROR_KEY_TYPES:
        return False
    if key_algorithm_from_der(der_hex) != MIRROR_KEY_TYPES[key_type]:
        return False
    return raw_key_from_der(der_hex) == mirror_hex
