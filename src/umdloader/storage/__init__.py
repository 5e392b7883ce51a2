"""Persistence for settings and recently used media."""
