"""
Tests Module: Unit and Integration Tests

Test Coverage:
    - Session table (create, restore, touch, destroy, sweep, invariants)
    - Session actor (ordering, shutdown, fatal commands)
    - Store facade and session value operations
    - Expiry timing
    - Manager options, configuration and logging
"""
