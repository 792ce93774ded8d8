"""Database engine, session and model definitions."""
