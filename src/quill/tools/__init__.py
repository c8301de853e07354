"""Content checks surfaced alongside modification previews."""

from .readability import ReadabilityAnalysis, analyze_readability
from .seo import SEOAnalysis, check_seo

__all__ = ["ReadabilityAnalysis", "SEOAnalysis", "analyze_readability", "check_seo"]
