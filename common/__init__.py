"""Shared helpers: image record type, timestamp/sort/caption utilities, JSON logging."""
