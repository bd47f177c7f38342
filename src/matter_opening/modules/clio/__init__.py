"""Clio practice-management module."""

from matter_opening.modules.clio.contacts import sync_contacts
from matter_opening.modules.clio.matters import open_matter

__all__ = ["open_matter", "sync_contacts"]
