"""Adapters between outer surfaces and application services."""
