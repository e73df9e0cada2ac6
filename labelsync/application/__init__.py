"""Application layer: use cases that orchestrate catalog and persistence."""
