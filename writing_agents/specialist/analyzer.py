"""
Text Analyzer

Structural analysis behind a swappable interface.

PlaceholderAnalyzer is a heuristic stand-in: the hook is the first 100
characters of the text and every other field is canned. Its exact output is
kept stable for parity tests only and is not a long-term contract.
"""

from abc import ABC, abstractmethod

from ..common.schemas import AnalysisMode, Category, StructureAnalysis, TextAnalysis

HOOK_LENGTH = 100


class TextAnalyzer(ABC):
    """Interface for analyze_text implementations"""

    @abstractmethod
    def analyze(self, text: str, mode: AnalysisMode) -> TextAnalysis:
        pass


class PlaceholderAnalyzer(TextAnalyzer):
    """Canned analysis with the text's opening as the hook."""

    def analyze(self, text: str, mode: AnalysisMode) -> TextAnalysis:
        return TextAnalysis(
            category=Category.PERSONAL_STATEMENT,
            analysis_mode=mode,
            structure=StructureAnalysis(
                hook=text[:HOOK_LENGTH] + "...",
                setup="Analysis of setup section...",
                conflict="Analysis of conflict section...",
                insight="Analysis of insight/growth section...",
                conclusion="Analysis of conclusion...",
            ),
            topics=["identity", "growth", "challenges"],
            strengths=["Strong hook", "Clear narrative arc", "Personal voice"],
            weaknesses=["Could use more specific examples", "Conclusion could be stronger"],
            suggestions=["Add more concrete details", "Strengthen the conclusion with future goals"],
        )
