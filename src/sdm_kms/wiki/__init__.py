"""Concept wiki graph."""

from sdm_kms.wiki.store import WikiStore
from sdm_kms.wiki.suggest import ParentSuggestion, suggest_parent

__all__ = ["ParentSuggestion", "WikiStore", "suggest_parent"]
