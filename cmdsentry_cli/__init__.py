"""Command line entry point for cmdsentry."""
