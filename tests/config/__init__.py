"""Config flow tests."""
