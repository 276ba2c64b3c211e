"""HunterFit persistence layer: ORM models."""
