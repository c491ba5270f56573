"""Input validation gate — runs before any equation is evaluated.

All functions here are **pure**: no I/O, no logging.

A rejected input is described by a :class:`ValidationIssue` naming the
offending field and the reason, so a form can highlight the exact box the
user typed into.  Checks *return* issues; only the public solvers turn a
non-empty issue list into a :class:`ValidationError`, and they do so before
any arithmetic runs.  Nothing downstream of the gate has to guard against
``NaN``, ``inf`` or a zero denominator.

Accepted domains
----------------
* **Stake** — finite, ``≥ 0`` and at most ``MAX_STAKE``.
* **Odd** — finite and either ``0`` (not yet entered) or in
  ``(1, MAX_ODD]``.  An odd of exactly ``1`` pays back the stake and
  nothing else; it can never be part of a hedge and is rejected.
* **Commission** — finite, in ``[0, 100)`` percent.  At 100% a winning lay
  pays nothing, so no lay stake can hedge the back bet; it is rejected
  rather than solved.
* **Extraction** — finite, in ``[0, 100]`` percent of a liability.  A
  target above the liability would extract money that is not there, so
  it is rejected rather than clamped.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, List, Sequence

from arbcalc.core.engine_config import MAX_ODD, MAX_STAKE

if TYPE_CHECKING:
    from arbcalc.core.hedge import HedgeInputs
    from arbcalc.core.legs import StakeEntry


@dataclass(frozen=True)
class ValidationIssue:
    """A single rejected field.

    Attributes:
        field: Dotted path of the offending input, e.g. ``"back_odd"`` or
            ``"legs[1].entries[0].stake"``.
        reason: Human-readable explanation suitable for a form tooltip.
    """

    field: str
    reason: str

    def as_dict(self) -> dict:
        return {"field": self.field, "reason": self.reason}


class ValidationError(ValueError):
    """Raised when a calculator is invoked with inputs it cannot solve.

    Always a caller-input problem; there is nothing to retry.  The
    ``issues`` tuple carries one :class:`ValidationIssue` per offending
    field.
    """

    def __init__(self, issues: Iterable[ValidationIssue]):
        self.issues = tuple(issues)
        summary = "; ".join(f"{i.field}: {i.reason}" for i in self.issues)
        super().__init__(summary or "invalid input")

    @classmethod
    def single(cls, field: str, reason: str) -> ValidationError:
        return cls([ValidationIssue(field, reason)])

    def as_dicts(self) -> List[dict]:
        return [issue.as_dict() for issue in self.issues]


# ---------------------------------------------------------------------------
# Scalar checks
# ---------------------------------------------------------------------------


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def check_stake(value: float, field: str = "stake") -> List[ValidationIssue]:
    """Stake must be a finite number in ``[0, MAX_STAKE]``."""
    if not _is_number(value) or not math.isfinite(value):
        return [ValidationIssue(field, "stake must be a finite number")]
    if value < 0:
        return [ValidationIssue(field, f"stake must be >= 0, got {value!r}")]
    if value > MAX_STAKE:
        return [ValidationIssue(field, f"stake must be at most {MAX_STAKE:g}, got {value!r}")]
    return []


def check_odd(
    value: float,
    field: str = "odd",
    *,
    allow_unset: bool = True,
) -> List[ValidationIssue]:
    """Odd must be finite and ``> 1``; ``0`` is accepted as "unset" when allowed."""
    if not _is_number(value) or not math.isfinite(value):
        return [ValidationIssue(field, "odd must be a finite number")]
    if value == 0 and allow_unset:
        return []
    if value <= 1:
        return [ValidationIssue(field, f"odd must be greater than 1, got {value!r}")]
    if value > MAX_ODD:
        return [ValidationIssue(field, f"odd must be at most {MAX_ODD:g}, got {value!r}")]
    return []


def check_commission(value: float, field: str = "commission_pct") -> List[ValidationIssue]:
    """Commission percent must be finite and in ``[0, 100)``."""
    if not _is_number(value) or not math.isfinite(value):
        return [ValidationIssue(field, "commission must be a finite number")]
    if value < 0 or value >= 100:
        return [ValidationIssue(field, f"commission must be in [0, 100), got {value!r}")]
    return []


def check_extraction_pct(value: float, field: str = "extraction_pct") -> List[ValidationIssue]:
    """Share of a liability to extract, finite and in ``[0, 100]`` percent."""
    if not _is_number(value) or not math.isfinite(value):
        return [ValidationIssue(field, "extraction must be a finite number")]
    if value < 0 or value > 100:
        return [ValidationIssue(field, f"extraction must be in [0, 100], got {value!r}")]
    return []


# ---------------------------------------------------------------------------
# Composite checks
# ---------------------------------------------------------------------------


def validate_entry(entry: StakeEntry, prefix: str = "") -> List[ValidationIssue]:
    """Return every issue with a single stake entry (empty list = valid)."""
    return [
        *check_odd(entry.odd, f"{prefix}odd"),
        *check_stake(entry.stake, f"{prefix}stake"),
    ]


def validate_hedge_inputs(inputs: HedgeInputs) -> List[ValidationIssue]:
    """Return every issue with a back/lay hedge request.

    Unlike stake entries, both odds are required here: a hedge cannot be
    solved against an unset price.
    """
    issues = [
        *check_stake(inputs.back_stake, "back_stake"),
        *check_odd(inputs.back_odd, "back_odd", allow_unset=False),
        *check_odd(inputs.lay_odd, "lay_odd", allow_unset=False),
        *check_commission(inputs.commission_pct, "commission_pct"),
    ]
    if not issues and inputs.lay_odd - inputs.commission_pct / 100.0 <= 0:
        issues.append(
            ValidationIssue("lay_odd", "lay odd minus commission must be positive")
        )
    return issues


def raise_for_issues(issues: Sequence[ValidationIssue]) -> None:
    """Raise :class:`ValidationError` when ``issues`` is non-empty."""
    if issues:
        raise ValidationError(issues)
