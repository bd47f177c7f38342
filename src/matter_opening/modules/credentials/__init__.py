"""Credentials module."""

from matter_opening.modules.credentials.chain import fetch_secret, read_profile_secret, refresh_access_token

__all__ = ["fetch_secret", "read_profile_secret", "refresh_access_token"]
