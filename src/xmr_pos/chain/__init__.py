"""External payment status sources."""
