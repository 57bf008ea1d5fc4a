"""Command line interface for multiprog."""
