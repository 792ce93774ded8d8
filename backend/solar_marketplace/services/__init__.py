"""Marketplace domain services."""
