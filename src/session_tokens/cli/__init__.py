"""Command-line interface for session-tokens."""
