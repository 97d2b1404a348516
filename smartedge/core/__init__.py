"""Core mathematics, domain types and policy for the SmartEdge scoring core.

This package contains pure, sport-agnostic building blocks:

- ``odds_math``     - decimal-odds conversion, implied probability, best price
- ``kelly``         - expected value and fractional Kelly sizing
- ``types``         - frozen value objects (Match, Prediction, ...)
- ``policy``        - SmartScore weights and staking policy constants
- ``league_config`` - per-league constants (home advantage, scoring base, ...)
- ``errors``        - exception taxonomy

Nothing in this package imports from ``smartedge.services``.
All modules are side-effect-free and unit-testable in isolation.
"""
