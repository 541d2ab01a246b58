"""Shared utilities: error types and input validation."""
