"""Cross-cutting services for the recruitment back office."""
