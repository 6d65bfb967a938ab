"""Per-device driver building blocks."""
