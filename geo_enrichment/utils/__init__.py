"""Shared helpers used by sources and the classifier."""
