"""Product catalog and stock helpers."""
