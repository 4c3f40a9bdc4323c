"""Domain services for the writer ledger."""
