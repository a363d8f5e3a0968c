"""Clients for the external services the pipeline stages call."""
