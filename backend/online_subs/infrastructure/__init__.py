"""Infrastructure Layer - database access, the subscription store, and logging.

Invariants:
    - Only this layer imports SQLAlchemy engines and sessions
    - Every failure leaving this layer is a core.errors type

Design Decisions:
    - Imperative shell around the pure core: IO here, arithmetic in core/
"""
