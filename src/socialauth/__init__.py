"""Drupal and Instagram login over the OAuth2 authorization-code flow."""

__version__ = "1.0.0"
