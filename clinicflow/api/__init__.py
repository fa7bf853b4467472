"""HTTP binding of the ticket lifecycle."""
