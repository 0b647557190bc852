"""Standalone helpers: the file cache and image post-processing."""
