"""Dependency-injection container for the engine services."""

from .container import ServiceContainer

__all__ = ["ServiceContainer"]
