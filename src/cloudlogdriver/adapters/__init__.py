"""Adapters connecting the core to Python logging and web frameworks."""
