"""Persistence — manifest, build metadata, atomic writes and locking."""
