"""Short snapshot id generation.

Ids are short and friendly for share links. Collisions are possible and are
not checked for.
"""

from __future__ import annotations

import secrets

_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ_-"
_DEFAULT_LENGTH = 9


def generate_snapshot_id(length: int = _DEFAULT_LENGTH) -> str:
    if length <= 0:
        raise ValueError(f"Snapshot id length must be positive: {length}")
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))
