"""Yield helpers shared by adapters that read per-second rates."""
from __future__ import annotations

SECONDS_PER_YEAR = 31_536_000


def apr_to_apy(apr: float, compoundings_per_year: int) -> float:
    """Compound a simple annual rate ``compoundings_per_year`` times."""
    return (1 + apr / compoundings_per_year) ** compoundings_per_year - 1
