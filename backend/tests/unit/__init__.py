"""
Unit Tests

Unit tests run in isolation without external services. The database is an
in-memory SQLite instance created per test.
"""
