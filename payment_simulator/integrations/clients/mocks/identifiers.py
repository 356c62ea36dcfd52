"""
Provider-style identifiers.

Transaction ids come from ``secrets`` so they stay unique across the store;
the cosmetic provider tokens take an optional ``random.Random`` so tests can
pin the sequence.
"""

import random
import secrets
import string
from datetime import datetime
from typing import Optional

_rng = random.Random()


def new_transaction_id(prefix: str) -> str:
    return f"{prefix}{secrets.token_hex(6).upper()}"


def new_checkout_id(rng: Optional[random.Random] = None) -> str:
    rng = rng or _rng
    return f"ws_CO_{datetime.now().strftime('%Y%m%d%H%M%S')}_{rng.randint(100_000, 999_999)}"


def new_receipt(rng: Optional[random.Random] = None) -> str:
    rng = rng or _rng
    letters = "".join(rng.sample(string.ascii_uppercase, 2))
    return f"{letters}{rng.randint(10_000_000, 99_999_999)}"


def new_bank_reference(rng: Optional[random.Random] = None) -> str:
    rng = rng or _rng
    return f"FT{datetime.now().strftime('%y%m%d')}{rng.randint(100_000, 999_999)}"
