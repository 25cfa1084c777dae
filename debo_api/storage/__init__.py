"""Persistent state: file locations, the access-token store and settings."""
