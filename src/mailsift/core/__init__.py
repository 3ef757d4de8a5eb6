"""Core configuration, types and collaborators."""
