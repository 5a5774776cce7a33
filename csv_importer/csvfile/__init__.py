"""CSV input: source reduction and tokenizing."""
