"""
Test Fixtures Package

Shared test utilities and helpers for consistent testing across all modules.
"""

from .store_factory import CountingProducer, FakeClock, InMemoryStore, RecordingSleep

__all__ = ["InMemoryStore", "FakeClock", "RecordingSleep", "CountingProducer"]
