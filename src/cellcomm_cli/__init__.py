"""Command-line applications for the cellcomm harness."""
