"""Energy score computation: check-in aggregation, local and remote scoring, score store."""
