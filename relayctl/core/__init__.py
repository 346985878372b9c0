"""Core — models, persistence, services and use cases (no UI code)."""
