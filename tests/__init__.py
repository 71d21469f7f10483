"""Tests for Floor Heating Controller."""
