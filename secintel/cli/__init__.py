"""Command line interface for the security intelligence crawler."""
