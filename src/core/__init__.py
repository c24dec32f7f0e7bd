"""Core authorization and organizational hierarchy engine."""
