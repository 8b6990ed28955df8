"""Service layer helpers (settings, session values, groups, image codec)."""
