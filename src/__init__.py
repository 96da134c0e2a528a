# src/__init__.py
"""Cooktopia backend: image upload proxy and recipe interaction services."""
