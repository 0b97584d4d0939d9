"""Command line interface for sesh."""
