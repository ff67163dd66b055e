"""
Issue vectorization and similarity retrieval pipelines.
"""

from .vectorizer import Vectorizer, VectorizeReport, vectorize_issues
from .historian import Historian, QueryIssue, find_relevant_documents

__all__ = [
    'Vectorizer',
    'VectorizeReport',
    'vectorize_issues',
    'Historian',
    'QueryIssue',
    'find_relevant_documents'
]
