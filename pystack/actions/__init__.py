"""User-facing actions that mutate branches."""
