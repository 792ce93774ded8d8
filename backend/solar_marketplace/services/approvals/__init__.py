"""Product approval workflow."""
