"""Core Layer — pure domain logic, no IO, no async, no logging.

Invariants:
    - No module in core/ imports from services/, api/ or infrastructure/
    - All functions are pure and deterministic

Design Decisions:
    - Functional core separated from imperative shell (ADR: ExMA impureim sandwich)
"""
