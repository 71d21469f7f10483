"""Unit tests for the pure control core."""
