"""Retrieval, import and administration services."""
