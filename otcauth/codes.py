"""One-time code generation."""

from __future__ import annotations

import secrets

CODE_LOW = 100_000
CODE_SPAN = 900_000


def generate_code() -> str:
    """Return a 6-digit code drawn uniformly from [100000, 999999] by the OS CSPRNG."""
    return str(CODE_LOW + secrets.randbelow(CODE_SPAN))


def codes_match(expected: str, supplied: str) -> bool:
    return secrets.compare_digest(expected.encode("ascii"), supplied.encode("ascii", "replace"))
