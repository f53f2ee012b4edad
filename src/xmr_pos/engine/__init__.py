"""Settlement engine."""
