"""
Utility helpers.
"""

from __future__ import annotations

import string
import time
from decimal import Decimal, InvalidOperation, ROUND_DOWN
from typing import Optional

BASE58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
ORDER_ID_ALPHABET = string.ascii_uppercase + string.digits


def now_ms() -> int:
    return int(time.time() * 1000)


def parse_amount(raw: object) -> Optional[Decimal]:
    """
    Parse a user supplied amount into a positive Decimal.

    Returns None for anything that is not a finite number greater than zero.
    """
    if raw is None or isinstance(raw, bool):
        return None
    try:
        value = Decimal(str(raw).strip())
    except (InvalidOperation, ValueError):
        return None
    if not value.is_finite() or value <= 0:
        return None
    return value


def format_amount(value: Decimal, places: int = 6) -> str:
    """Render an amount with a fixed number of decimals, truncating the rest."""
    quantum = Decimal(1).scaleb(-places)
    return str(value.quantize(quantum, rounding=ROUND_DOWN))


def random_hex(rng, n_chars: int) -> str:
    bits = n_chars * 4
    return format(rng.getrandbits(bits), f"0{n_chars}x")


def random_from_alphabet(rng, alphabet: str, n_chars: int) -> str:
    return "".join(rng.choice(alphabet) for _ in range(n_chars))
