"""Graph serialization."""
