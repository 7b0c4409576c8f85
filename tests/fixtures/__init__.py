"""
Test fixtures package.

This package provides reusable pytest fixtures for testing the podcast-processor
application. Import fixtures into conftest.py to make them available to all tests.

Available fixture modules:
- database: Async SQLAlchemy engine/session fixtures backed by in-memory SQLite
"""
