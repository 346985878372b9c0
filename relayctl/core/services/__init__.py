"""Services — the lifecycle components, one module per responsibility."""
