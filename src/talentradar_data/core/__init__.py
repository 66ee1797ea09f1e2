"""Core configuration, models and HTTP plumbing."""
