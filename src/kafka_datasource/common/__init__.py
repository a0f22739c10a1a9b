"""Shared infrastructure: errors, logging and secret redaction."""
