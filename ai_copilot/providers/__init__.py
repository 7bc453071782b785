"""Backends the copilot can talk to."""
