"""Engines: progression rules and curriculum services."""
