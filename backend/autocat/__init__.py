"""Transaction auto-categorization backend."""
