"""tex2html_chunked - Chunked LaTeX to HTML conversion

Splits large LaTeX documents into independently convertible chunks, runs each
chunk through an external converter (Pandoc), and recombines the fragments
into a single HTML document with balanced math, unique anchors, sequential
section numbers and repaired cross-references.
"""

__version__ = "1.0.0"

from .config import ChunkConfig
from .engine import ChunkedProcessingEngine, ChunkedResult, process_document

__all__ = [
    "ChunkConfig",
    "ChunkedProcessingEngine",
    "ChunkedResult",
    "process_document",
]
