"""Scholarship award workflow service."""
