"""Pydantic Schemas - request/response validation for API endpoints.

Invariants:
    - Schemas validate at system boundary (user input, API responses)
    - Months travel as MM-YYYY strings; inside the app they are dates

Design Decisions:
    - Separate from models: schemas are API contracts, models are persistence
"""
