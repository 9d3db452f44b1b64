"""API Layer — request pipeline, boundary error handlers and FastAPI routes.

Invariants:
    - Routes registered explicitly in main.py (no auto-discovery)
    - Only the request pipeline writes error responses

Design Decisions:
    - Thin routes delegate to services (ADR: ExMA impureim sandwich)
"""
