"""HTTP API for the time-accounting engine."""
