"""HTTP API for the expense engine."""
