"""Classification taxonomy."""

from __future__ import annotations

from mailsift.classification.taxonomy import Category, Taxonomy, load_taxonomy

__all__ = ["Category", "Taxonomy", "load_taxonomy"]
