"""Time-ordered identifiers for sandbox containers.

Identifiers follow the ULID layout: a 48-bit millisecond timestamp followed
by 80 random bits, encoded as 26 Crockford base32 characters. Within the same
millisecond the random part is incremented rather than redrawn, so values
generated in a tight loop stay unique and sort in creation order.
"""

from __future__ import annotations

import secrets
import threading
import time

_ALPHABET = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"
_RANDOM_BITS = 80
_RANDOM_MAX = (1 << _RANDOM_BITS) - 1

_lock = threading.Lock()
_last_ms = -1
_last_rand = 0


def _encode(value: int, length: int) -> str:
    chars = []
    for _ in range(length):
        value, rem = divmod(value, 32)
        chars.append(_ALPHABET[rem])
    return "".join(reversed(chars))


def new_id() -> str:
    """Return a new 26-character identifier, unique within this process."""
    global _last_ms, _last_rand

    with _lock:
        now_ms = time.time_ns() // 1_000_000
        if now_ms <= _last_ms:
            # Same (or skewed-back) millisecond: keep ordering monotonic
            now_ms = _last_ms
            if _last_rand == _RANDOM_MAX:
                now_ms += 1
                rand = secrets.randbits(_RANDOM_BITS)
            else:
                rand = _last_rand + 1
        else:
            rand = secrets.randbits(_RANDOM_BITS)
        _last_ms, _last_rand = now_ms, rand

    return _encode(now_ms, 10) + _encode(rand, 16)
