"""
Writing Agents Schemas

Corpus documents and text analysis records.
"""

from .document import (
    EMBEDDING_DIMENSION,
    Category,
    AnalysisMode,
    StructureAnalysis,
    TextAnalysis,
    Document,
    ScoredDocument,
    CorpusStats,
    utcnow,
)

__all__ = [
    "EMBEDDING_DIMENSION",
    "Category",
    "AnalysisMode",
    "StructureAnalysis",
    "TextAnalysis",
    "Document",
    "ScoredDocument",
    "CorpusStats",
    "utcnow",
]
