"""Per-unit stages: capture session, trace replay, record normalization."""
