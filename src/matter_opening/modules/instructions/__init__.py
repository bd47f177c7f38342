"""Instruction records module."""

from matter_opening.modules.instructions.records import record_matter_request, record_opponents

__all__ = ["record_matter_request", "record_opponents"]
