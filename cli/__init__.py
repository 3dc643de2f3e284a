"""sigrid command line interface."""
