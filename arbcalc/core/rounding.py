"""Rounding policy — the single place where calculator outputs lose precision.

Every function here is **pure**: no I/O, no logging, no side effects.

Design decisions
----------------
* Rounding happens **once**, at the boundary of each public calculator.
  Chained computations (weighted odd → leg return → profit → ROI) run at
  full float precision; rounding intermediate values compounds error and
  lets two call sites disagree by a cent.
* Rounding is **half away from zero** (``ROUND_HALF_UP`` in
  :mod:`decimal` terms), applied symmetrically: ``+0.005 → +0.01`` and
  ``−0.005 → −0.01``.  Python's built-in :func:`round` uses banker's
  rounding on the binary value and would return ``0.0`` for both.
* Floats are converted through their shortest ``repr`` (``Decimal(str(x))``)
  so ``2.675`` rounds as the decimal literal the user typed (``2.68``), not
  as its binary approximation ``2.67499999…``.
* Negative zero is normalised to ``0.0`` so a rounded break-even never
  renders as ``-0.00``.

Run tests with::

    pytest tests/test_rounding.py -v
"""

from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import Optional

from arbcalc.core.engine_config import MONEY_PLACES, PERCENT_PLACES


def _precision_for(exact: Decimal, places: int) -> int:
    # Enough significant digits to hold every integer digit plus `places`.
    return max(28, exact.adjusted() + places + 3)


def round_half_away(value: float, places: int) -> float:
    """Round ``value`` to ``places`` decimals, ties away from zero.

    Args:
        value: Finite float to round.
        places: Number of decimal places, ``≥ 0``.

    Returns:
        The rounded float.  Non-finite input is returned unchanged; callers
        are expected to have passed the validation gate first.

    Examples::

        round_half_away(0.005, 2)   →  0.01
        round_half_away(-0.005, 2)  → -0.01
        round_half_away(2.675, 2)   →  2.68
        round_half_away(12.25, 1)   →  12.3
    """
    if not math.isfinite(value):
        return value
    exact = Decimal(str(value))
    with localcontext() as ctx:
        ctx.prec = _precision_for(exact, places)
        rounded = float(exact.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP))
    return rounded or 0.0


def round_money(value: float, places: int = MONEY_PLACES) -> float:
    """Round a monetary amount (stake, return, profit, liability)."""
    return round_half_away(value, places)


def round_percent(value: float, places: int = PERCENT_PLACES) -> float:
    """Round a percentage (ROI, extraction rate, margin)."""
    return round_half_away(value, places)


def round_optional_money(value: Optional[float], places: int = MONEY_PLACES) -> Optional[float]:
    """:func:`round_money` that passes ``None`` through ("not yet meaningful")."""
    return None if value is None else round_money(value, places)


def round_optional_percent(value: Optional[float], places: int = PERCENT_PLACES) -> Optional[float]:
    """:func:`round_percent` that passes ``None`` through."""
    return None if value is None else round_percent(value, places)


def round_to_step(value: float, step: Optional[float]) -> float:
    """Round a stake to the nearest multiple of ``step``.

    Operators often place whole or round-number stakes (``37`` rather than
    ``36.84``) to look less like an arbitrageur.  ``step=None`` or a
    non-positive step leaves ``value`` untouched.

    Examples::

        round_to_step(36.84, 1.0)  → 37.0
        round_to_step(36.84, 5.0)  → 35.0
        round_to_step(37.5, 5.0)   → 40.0
        round_to_step(36.84, None) → 36.84
    """
    if step is None or step <= 0 or not math.isfinite(value):
        return value
    exact, quantum = Decimal(str(value)), Decimal(str(step))
    with localcontext() as ctx:
        ctx.prec = _precision_for(exact, 0) + max(0, -quantum.adjusted())
        whole = (exact / quantum).quantize(Decimal(1), rounding=ROUND_HALF_UP)
        return float(whole * quantum) or 0.0
