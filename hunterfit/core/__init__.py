"""
Core infrastructure layer for HunterFit (2025).

Subpackages
-----------
- ``config``: static environment config and YAML balance config
- ``logging``: structured, queue-backed logging with context propagation
- ``event``: in-process async EventBus
- ``database``: async SQLAlchemy engine, sessions, transactions, hunter guard
- ``services``: dependency-injection container for the engine services

This package performs no side effects on import.
"""
