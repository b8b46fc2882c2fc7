"""Adapters connecting the domain to HTTP, SQL and the file system."""
