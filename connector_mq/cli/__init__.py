"""Command line interface and configuration providers."""
