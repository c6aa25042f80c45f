"""Shared helpers: score arithmetic and input validation."""
