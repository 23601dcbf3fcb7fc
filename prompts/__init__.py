"""Jinja2 prompt templates, one per artifact type."""
