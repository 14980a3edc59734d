"""Per-kind policy validators and generators."""
