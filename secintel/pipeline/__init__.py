"""Extraction pipeline: parsing, cascade stages, validation and persistence."""
