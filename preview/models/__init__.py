"""Preview host models."""
