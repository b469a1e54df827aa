"""Analysis of finished dependency graphs."""
