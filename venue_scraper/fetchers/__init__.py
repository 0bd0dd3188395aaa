"""Page retrieval: headless rendering, plain HTTP fallback and the composite page source."""
