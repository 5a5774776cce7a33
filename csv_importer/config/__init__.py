"""Job configuration loading."""
