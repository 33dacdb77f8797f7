"""Boundary adapters: database, blob storage and the realtime change feed."""
