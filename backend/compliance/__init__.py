"""Renewal, expiration and autopay lifecycle for carrier compliance services."""
