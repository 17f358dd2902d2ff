"""Shared helpers used across the engine."""
