"""Cross-cutting utilities for the orchestration layer.

Modules:
    logging: JSON structured logger used by services and workers.
"""
