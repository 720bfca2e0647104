"""Clients for external services."""

from .fuzzy_match_client import HttpFuzzyMatcher

__all__ = ["HttpFuzzyMatcher"]
