"""
Synthetic chain artefacts: deposit addresses, transaction hashes and
per-asset settlement parameters.

Nothing here is derived from keys or observed on a real network; values only
need to look plausible for the asset family they are generated for.
"""

from __future__ import annotations

import random
from typing import Dict, FrozenSet

from swapengine.utils import BASE58_ALPHABET, random_from_alphabet, random_hex

# Account-based chains whose hashes and addresses are 0x-prefixed hex.
EVM_ASSETS: FrozenSet[str] = frozenset({"ETH", "USDT", "USDC", "BNB", "MATIC", "ARB", "OP", "AVAX"})

# Proof-of-work assets settle slower and need more confirmations.
POW_ASSETS: FrozenSet[str] = frozenset({"BTC", "LTC", "XMR", "DOGE", "BCH"})

REQUIRED_CONFIRMATIONS: Dict[str, int] = {
    "BTC": 3,
    "LTC": 4,
    "BCH": 4,
    "XMR": 6,
    "DOGE": 6,
}
DEFAULT_REQUIRED_CONFIRMATIONS = 1

_BECH32_CHARS = "qpzry9x8gf2tvdw0s3jn54khce6mua7l"


def required_confirmations(symbol: str) -> int:
    return REQUIRED_CONFIRMATIONS.get(symbol.upper(), DEFAULT_REQUIRED_CONFIRMATIONS)


def is_proof_of_work(symbol: str) -> bool:
    return symbol.upper() in POW_ASSETS


def deposit_address(symbol: str, rng: random.Random) -> str:
    sym = symbol.upper()
    if sym in EVM_ASSETS:
        return "0x" + random_hex(rng, 40)
    if sym == "BTC":
        return "bc1q" + random_from_alphabet(rng, _BECH32_CHARS, 38)
    if sym == "LTC":
        return "ltc1q" + random_from_alphabet(rng, _BECH32_CHARS, 38)
    if sym == "TRX":
        return "T" + random_from_alphabet(rng, BASE58_ALPHABET, 33)
    if sym == "SOL":
        return random_from_alphabet(rng, BASE58_ALPHABET, 44)
    if sym == "XMR":
        return "4" + random_from_alphabet(rng, BASE58_ALPHABET, 94)
    return "0x" + random_hex(rng, 40)


def tx_hash(symbol: str, rng: random.Random) -> str:
    """Hex-prefixed for account-based chains, base58 for Solana, bare hex otherwise."""
    sym = symbol.upper()
    if sym in EVM_ASSETS:
        return "0x" + random_hex(rng, 64)
    if sym == "SOL":
        return random_from_alphabet(rng, BASE58_ALPHABET, 88)
    return random_hex(rng, 64)
