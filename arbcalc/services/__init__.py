"""Request-level services built on :mod:`arbcalc.core`."""
