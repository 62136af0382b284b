"""Adapters for the external media engine, the filesystem and logging."""
