"""Ink Finder: tattoo studio directory crawler backend."""
