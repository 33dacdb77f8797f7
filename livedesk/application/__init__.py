"""Application layer: use-case services over the boundary adapters."""
