"""Core mathematics and configuration for the arbcalc stake engine.

This package contains pure, stateless building blocks:

- ``validation``    — input gate, ``ValidationIssue`` / ``ValidationError``
- ``rounding``      — output precision policy (half away from zero)
- ``legs``          — stake entries, weighted odd, per-leg profit
- ``arbitrage``     — worst-case book resolution and reference-leg stake solving
- ``hedge``         — back/lay lay-stake solver for qualifying and free bets
- ``market``        — margin, fair probabilities and balanced stakes
- ``protection``    — progressive lay protection for multiples
- ``engine_config`` — precision, default commission and rating thresholds

Nothing in this package imports from ``arbcalc.services`` or does I/O.
All modules are side-effect-free and unit-testable in isolation.
"""
