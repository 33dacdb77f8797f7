"""API and feed schemas (pydantic)."""
