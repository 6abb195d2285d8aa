"""Command-line interface for photo cleaner."""
