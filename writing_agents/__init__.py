"""
Writing Agents

A conversational writing specialist backed by a corpus of reference documents.

Philosophy:
- Embeddings are computed on-device from normalized text
- Retrieval failures keep the conversation flowing; write failures never pass silently
- At most one tool round trip per user turn

Usage:
    from writing_agents.common import load_config, EmbeddingService, SupabaseDocumentStore
    from writing_agents.specialist import WritingSpecialist, WritingService
"""

__version__ = "0.1.0"
