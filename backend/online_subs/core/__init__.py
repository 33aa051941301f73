"""Core Layer - pure domain logic, no IO, no async, no DB.

Invariants:
    - No module in core/ imports from api/, infrastructure/, models/, or db/
    - All functions are pure and deterministic

Design Decisions:
    - Functional core separated from the imperative shell: the store does IO,
      core decides what the rows mean (overlap months, pagination math)
"""
