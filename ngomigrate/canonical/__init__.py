"""Field normalization for raw spreadsheet values."""
