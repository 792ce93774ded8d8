"""Order workflow: inventory, pricing, numbering and status transitions."""
