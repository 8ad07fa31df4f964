"""Markup processing: chunking, style slicing and content reduction."""

from sitewright.markup.chunker import ChunkingResult, ContentChunk, ContentChunker
from sitewright.markup.optimizer import ContentOptimizer, ImagePreservationReport

__all__ = [
    "ChunkingResult",
    "ContentChunk",
    "ContentChunker",
    "ContentOptimizer",
    "ImagePreservationReport",
]
