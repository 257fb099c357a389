"""Enums, role ranks and error classification shared across layers."""
