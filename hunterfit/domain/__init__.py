"""Domain models: pure value types and tagged domain events."""
