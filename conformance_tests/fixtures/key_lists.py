"""``generateKey`` parameters for composite keys."""

from __future__ import annotations

from tck.core.keys import KeyType


FOUR_KEYS_KEY_LIST = {
    "type": KeyType.KEY_LIST.value,
    "keys": [
        {"type": KeyType.ED25519_PUBLIC.value},
        {"type": KeyType.ED25519_PRIVATE.value},
        {"type": KeyType.ECDSA_SECP256K1_PRIVATE.value},
        {"type": KeyType.ECDSA_SECP256K1_PUBLIC.value},
    ],
}

TWO_LEVELS_NESTED_KEY_LIST = {
    "type": KeyType.KEY_LIST.value,
    "keys": [
        {
            "type": KeyType.KEY_LIST.value,
            "keys": [
                {"type": KeyType.ECDSA_SECP256K1_PUBLIC.value},
                {"type": KeyType.ECDSA_SECP256K1_PRIVATE.value},
            ],
        },
        {
            "type": KeyType.KEY_LIST.value,
            "keys": [
                {"type": KeyType.ECDSA_SECP256K1_PUBLIC.value},
                {"type": KeyType.ED25519_PUBLIC.value},
            ],
        },
        {
            "type": KeyType.KEY_LIST.value,
            "keys": [
                {"type": KeyType.ED25519_PRIVATE.value},
                {"type": KeyType.ECDSA_SECP256K1_PUBLIC.value},
            ],
        },
    ],
}

TWO_OF_THREE_THRESHOLD_KEY = {
    "type": KeyType.THRESHOLD_KEY.value,
    "threshold": 2,
    "keys": [
        {"type": KeyType.ED25519_PRIVATE.value},
        {"type": KeyType.ECDSA_SECP256K1_PUBLIC.value},
        {"type": KeyType.ED25519_PUBLIC.value},
    ],
}
