"""Model adapters (persistence boundary of the importer)."""
