"""Image analysis for captured pages."""

from sitewright.image.analyzer import ImageAnalysis, ImageAnalyzer, ImageRecord

__all__ = ["ImageAnalysis", "ImageAnalyzer", "ImageRecord"]
