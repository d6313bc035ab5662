"""
Invoice number formatting.

Pure functions with deterministic behavior given their inputs. No I/O.

Numbers look like ``INV-202406-K3F9QZ``: a fixed prefix, the issue year and
month, and a short token.  Two token sources are supported:

    token     last ``time_chars`` base-36 digits of the epoch milliseconds
              followed by ``random_chars`` base-36 digits from a random
              source, uppercased.  Collisions are unlikely but possible;
              the database unique constraint is the backstop.
    sequence  the zero-padded value of a per-month counter, supplied by the
              caller.  Unique by construction.
"""

from __future__ import annotations

import random
import secrets
from datetime import date

INVOICE_PREFIX = "INV"

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def to_base36(value: int) -> str:
    """Lowercase base-36 digits of a non-negative integer."""
    if value < 0:
        raise ValueError(f"Cannot encode negative value {value}")
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits))


def month_prefix(issued_on: date) -> str:
    """``INV-YYYYMM``."""
    return f"{INVOICE_PREFIX}-{issued_on.year:04d}{issued_on.month:02d}"


class InvoiceNumberGenerator:
    """
    Builds invoice numbers.

    ``rng`` is injectable so tests can fix the random suffix; by default
    the OS random source is used.
    """

    def __init__(
        self,
        time_chars: int = 4,
        random_chars: int = 2,
        rng: random.Random | None = None,
    ):
        if time_chars < 1 or random_chars < 0:
            raise ValueError("time_chars must be >= 1 and random_chars >= 0")
        self.time_chars = time_chars
        self.random_chars = random_chars
        self._rng = rng or secrets.SystemRandom()

    def token_number(self, issued_on: date, epoch_millis: int) -> str:
        time_part = to_base36(epoch_millis)[-self.time_chars:].rjust(self.time_chars, "0")
        random_part = "".join(
            _BASE36[self._rng.randrange(36)] for _ in range(self.random_chars)
        )
        return f"{month_prefix(issued_on)}-{(time_part + random_part).upper()}"

    @staticmethod
    def sequence_number(issued_on: date, value: int, width: int = 4) -> str:
        if value < 1:
            raise ValueError(f"Sequence value must be positive, got {value}")
        return f"{month_prefix(issued_on)}-{value:0{width}d}"
