"""Shared models, configuration, command execution and terminal output."""
