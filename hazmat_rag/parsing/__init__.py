"""Text normalisation and identifier parsing."""
