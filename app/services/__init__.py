"""Business logic services for the workflow engine."""
