"""Publish destinations."""
