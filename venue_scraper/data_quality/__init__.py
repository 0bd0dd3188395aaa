"""Text normalisation helpers shared by the extractors."""
