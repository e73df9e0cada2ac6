"""labelsync - Spotify catalog sync and label reconciliation for Build It imprints."""
