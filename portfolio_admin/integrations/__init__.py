"""Clients for third-party services used by the admin console."""
