"""Graph model, storage and construction."""
