"""Retrieval pipeline: embeddings, vector store, chat orchestration."""

from newsrag.rag.embeddings import EmbeddingProvider, deterministic_embedding
from newsrag.rag.pipeline import ChatPipeline, ChatReply, extractive_response
from newsrag.rag.vector_store import VectorStore, relevance, similarity

__all__ = [
    "ChatPipeline",
    "ChatReply",
    "EmbeddingProvider",
    "VectorStore",
    "deterministic_embedding",
    "extractive_response",
    "relevance",
    "similarity",
]
