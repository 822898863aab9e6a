"""The pystack command."""
