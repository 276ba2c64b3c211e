"""
HunterFit Test Suite
====================

Test Organization
-----------------
- tests/unit/          : Engine and infrastructure tests on in-memory SQLite
- tests/integration/   : Cross-engine flows, plus PostgreSQL via testcontainers

Testing Philosophy
------------------
- Unit tests: fast, isolated, one engine at a time behind the container facade
- Integration tests: invariants that only hold when engines cooperate
- Use pytest markers to categorize and selectively run tests
"""
