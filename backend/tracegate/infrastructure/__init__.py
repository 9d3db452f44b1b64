"""Infrastructure Layer — cross-cutting concerns: diagnostics, logging, retries.

Invariants:
    - Infrastructure never imports from api/ or services/
    - Downstream calls that may be retried are wrapped with bounded backoff

Design Decisions:
    - Resilient wrappers over raw calls (ADR: ExMA single responsibility)
"""
