"""Multi-tick engine scenarios."""
