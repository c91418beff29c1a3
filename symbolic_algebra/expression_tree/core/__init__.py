"""Core expression tree components."""
