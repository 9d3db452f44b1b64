"""Pydantic Schemas — request/response contracts, including the error envelope.

Invariants:
    - Schemas validate at system boundary (user input, API responses)
"""
