"""Lyceum: a mastery-gated philosophy curriculum service."""
