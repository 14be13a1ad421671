"""Runtime settings and user-facing messages."""
