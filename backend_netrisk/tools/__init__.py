"""Command-line tools for batch analysis runs."""
