"""
RiverDB Test Suite.

This package contains:
- unit/: Unit tests, one module per component (in-memory and SQLite storage)
- integration/: Store layout model graph on every storage adapter
"""
