"""Encoders for rendered entries."""
