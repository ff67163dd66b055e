"""
Vector index record types - embedded issue documents and search hits.
"""

from typing import Dict, Optional
import numpy as np
from dataclasses import dataclass, field


@dataclass
class VectorRecord:
    """Represents an embedded document stored in a collection."""

    id: str
    """Unique identifier for the document (string form of the issue id)"""

    vector: Optional[np.ndarray]
    """The embedding of the content"""

    metadata: Dict[str, str] = field(default_factory=dict)
    """Additional metadata carried through for downstream filtering"""

    content: str = ""
    """The text that was embedded"""


@dataclass
class QueryResult:
    """Represents a search result from a vector store."""

    id: str
    """Identifier for the matching document"""

    score: float
    """Similarity score of the match (cosine, higher is closer)"""

    metadata: Dict[str, str] = field(default_factory=dict)
    """Metadata associated with the matched document"""

    content: str = ""
    """Content of the matched document"""
