"""
Document Schema

A reference document in the corpus (an essay, a sample, a reference text).
The embedding is generated from `content` and may be (re)computed
independently of the other fields.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from enum import Enum

from pydantic import BaseModel, Field, field_validator

EMBEDDING_DIMENSION = 384


# ============================================================================
# Enums
# ============================================================================

class Category(str, Enum):
    """Closed set of document categories"""
    PERSONAL_STATEMENT = "personal_statement"
    SUPPLEMENTAL = "supplemental"
    COMMON_APP = "common_app"
    OTHER = "other"


class AnalysisMode(str, Enum):
    """Depth of a text analysis"""
    QUICK_CHECK = "quick_check"
    DEEP_ANALYSIS = "deep_analysis"
    STRUCTURE_ANALYSIS = "structure_analysis"


# ============================================================================
# Sub-models
# ============================================================================

class StructureAnalysis(BaseModel):
    """Structural breakdown of a piece of writing"""
    hook: str = ""
    setup: str = ""
    conflict: str = ""
    insight: str = ""
    conclusion: str = ""


class TextAnalysis(BaseModel):
    """Result of the analyze_text tool"""
    category: Category = Category.PERSONAL_STATEMENT
    analysis_mode: AnalysisMode = AnalysisMode.DEEP_ANALYSIS
    structure: StructureAnalysis
    topics: List[str] = Field(default_factory=list)
    strengths: List[str] = Field(default_factory=list)
    weaknesses: List[str] = Field(default_factory=list)
    suggestions: List[str] = Field(default_factory=list)


# ============================================================================
# Main Schema
# ============================================================================

class Document(BaseModel):
    """
    A stored reference document.

    Invariant: if `embedding` is present it has exactly EMBEDDING_DIMENSION values.
    """
    id: Optional[str] = Field(default=None, description="Assigned by the store on insert")
    title: Optional[str] = None
    content: str = Field(..., min_length=1, description="Body text")
    category: Category = Field(default=Category.OTHER)
    source: Optional[str] = Field(default=None, description="Origin tag")
    college: Optional[str] = None
    prompt: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    structure_analysis: Optional[StructureAnalysis] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    embedding: Optional[List[float]] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("embedding", mode="before")
    @classmethod
    def _parse_embedding(cls, value):
        # pgvector columns come back from PostgREST as "[0.1,0.2,...]"
        if isinstance(value, str):
            return [float(v) for v in value.strip("[]").split(",") if v.strip()]
        return value

    @field_validator("embedding")
    @classmethod
    def _check_dimension(cls, value):
        if value is not None and len(value) != EMBEDDING_DIMENSION:
            raise ValueError(
                f"embedding must have {EMBEDDING_DIMENSION} dimensions, got {len(value)}"
            )
        return value

    @field_validator("tags")
    @classmethod
    def _dedupe_tags(cls, value: List[str]) -> List[str]:
        seen = set()
        tags = []
        for tag in value:
            if tag not in seen:
                seen.add(tag)
                tags.append(tag)
        return tags

    def to_row(self) -> Dict[str, Any]:
        """Serialize for the store, omitting unset identifiers."""
        return self.model_dump(mode="json", exclude_none=True)


class ScoredDocument(Document):
    """A document returned by similarity search"""
    similarity: float


class CorpusStats(BaseModel):
    """Corpus statistics"""
    total: int = 0
    by_category: Dict[str, int] = Field(default_factory=dict)
    by_tag: Dict[str, int] = Field(default_factory=dict)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
