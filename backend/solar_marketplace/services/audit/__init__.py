"""Append-only audit trail recording."""
