"""
splitter.py - Document splitting

Splits a full LaTeX source into chunks that can be converted one at a time.
Strategies, first that applies wins:

  1. \\section{   - one chunk per section (+ an introduction chunk)
  2. \\subsection{ - one chunk per subsection (+ an introduction chunk)
  3. size         - slices of at most max_chunk_size characters, cut at a
                   paragraph break when one is close to the boundary

Every chunk records the offsets of its raw content in the source, so the
chunks partition the document body in order and expression ranges can be
looked up in the registry.
"""

import copy
import logging
import re

from .balance import wrap_content_in_document
from .config import ChunkConfig, DEFAULT_PREAMBLE

logger = logging.getLogger(__name__)

# ============================================================================
# CHUNK DATA
# ============================================================================
PREAMBLE = 'preamble'
INTRODUCTION = 'introduction'
SECTION = 'section'
SUBSECTION = 'subsection'
FRAGMENT = 'fragment'
FALLBACK = 'fallback'

_DOCUMENT_RE = re.compile(r'(.*?)\\begin\{document\}(.*?)\\end\{document\}', re.DOTALL)
_SECTION_RE = re.compile(r'\\section\{')
_SUBSECTION_RE = re.compile(r'\\subsection\{')
_SECTION_TITLE_RE = re.compile(r'\\section\{((?:[^{}]|\{[^{}]*\})*)\}')
_SUBSECTION_TITLE_RE = re.compile(r'\\subsection\{((?:[^{}]|\{[^{}]*\})*)\}')


class Chunk:
    """A contiguous slice of the source document and its conversion state."""

    def __init__(self, type, title, raw_content, content,
                 source_start=0, source_end=0):
        self.type = type
        self.title = title
        self.raw_content = raw_content    # original LaTeX slice
        self.content = content            # wrapped, balanced document
        self.source_start = source_start
        self.source_end = source_end

        self.start_expression_index = 0
        self.end_expression_index = 0
        self.expression_count = 0

        # Filled in by the chunk processor
        self.output = None
        self.has_error = False
        self.processed_at = None
        self.hypertarget_labels = []
        self.error = None

    def copy(self):
        clone = copy.copy(self)
        clone.hypertarget_labels = list(self.hypertarget_labels)
        return clone

    def to_dict(self):
        return {
            'type': self.type,
            'title': self.title,
            'raw_content': self.raw_content,
            'content': self.content,
            'source_start': self.source_start,
            'source_end': self.source_end,
            'start_expression_index': self.start_expression_index,
            'end_expression_index': self.end_expression_index,
            'output': self.output,
            'has_error': self.has_error,
            'processed_at': self.processed_at,
            'hypertarget_labels': list(self.hypertarget_labels),
            'error': self.error,
        }

    def __repr__(self):
        return (f"Chunk({self.type}, {self.title!r}, {len(self.raw_content)} chars, "
                f"expr {self.start_expression_index}-{self.end_expression_index})")


# ============================================================================
# SPLITTING STRATEGIES
# ============================================================================
def _structural_chunks(body, preamble, body_offset, marker_re, title_re,
                       chunk_type, intro_type, intro_title, label, config):
    """Split at every match of ``marker_re``; None if there is no match."""
    starts = [m.start() for m in marker_re.finditer(body)]
    if not starts:
        return None

    chunks = []
    intro = body[:starts[0]]
    if intro.strip():
        chunks.append(Chunk(
            intro_type, intro_title, intro,
            wrap_content_in_document(preamble, intro, True),
            body_offset, body_offset + starts[0]))

    bounds = starts + [len(body)]
    for i in range(len(starts)):
        raw = body[bounds[i]:bounds[i + 1]]
        m = title_re.match(raw)
        title = m.group(1).strip() if m else f'{label} {i + 1}'
        chunks.append(Chunk(
            chunk_type, title[:config.title_max_length], raw,
            wrap_content_in_document(preamble, raw, not chunks),
            body_offset + bounds[i], body_offset + bounds[i + 1]))
    return chunks


def _size_chunks(body, preamble, body_offset, config):
    """Slice ``body`` into pieces of at most max_chunk_size characters,
    preferring to end a piece just after a blank line near the boundary."""
    chunks = []
    max_size = int(config.max_chunk_size)
    window = int(config.paragraph_window)
    pos = 0
    num = 1

    while pos < len(body):
        chunk_end = min(pos + max_size, len(body))
        actual_end = chunk_end
        if chunk_end < len(body):
            brk = body.find('\n\n', max(pos, chunk_end - window))
            if chunk_end - window < brk < chunk_end + window and brk + 2 > pos:
                actual_end = brk + 2

        raw = body[pos:actual_end]
        chunks.append(Chunk(
            FRAGMENT, f'Fragment {num}', raw,
            wrap_content_in_document(preamble, raw, num == 1),
            body_offset + pos, body_offset + actual_end))
        pos = actual_end
        num += 1

    return chunks


def create_fallback_chunk(content):
    """The whole input as one chunk, used when splitting fails."""
    content = content if isinstance(content, str) else ''
    return [Chunk(
        FALLBACK, 'Complete Document', content,
        wrap_content_in_document(DEFAULT_PREAMBLE, content, True),
        0, len(content))]


def split_document(full_latex, config=None):
    """Split LaTeX source into an ordered list of wrapped chunks."""
    config = config or ChunkConfig()
    try:
        m = _DOCUMENT_RE.match(full_latex)
        if m:
            preamble, body, body_offset = m.group(1), m.group(2), m.start(2)
            logger.debug("Detected full LaTeX document with preamble")
        else:
            preamble, body, body_offset = DEFAULT_PREAMBLE, full_latex, 0
            logger.debug("No document environment; using minimal preamble")

        chunks = _structural_chunks(
            body, preamble, body_offset, _SECTION_RE, _SECTION_TITLE_RE,
            SECTION, PREAMBLE, 'Document Introduction', 'Section', config)
        if chunks is None:
            chunks = _structural_chunks(
                body, preamble, body_offset, _SUBSECTION_RE, _SUBSECTION_TITLE_RE,
                SUBSECTION, INTRODUCTION, 'Introduction', 'Subsection', config)
        if chunks is None:
            chunks = _size_chunks(body, preamble, body_offset, config)
        if not chunks:
            return create_fallback_chunk(full_latex)

        logger.info("Document splitting strategy: %s, %d chunks created",
                    chunks[-1].type, len(chunks))
        return chunks
    except Exception as e:
        logger.error("Error splitting document into chunks: %s", e)
        return create_fallback_chunk(full_latex)


def assign_expression_ranges(chunks, registry):
    """Set each chunk's [start, end) range into the position-ordered registry.

    An expression belongs to the chunk its first character falls in, so the
    ranges are contiguous and follow document order.
    """
    for i, chunk in enumerate(chunks):
        chunk.start_expression_index = registry.count_before(chunk.source_start)
        chunk.end_expression_index = registry.count_before(chunk.source_end)
        chunk.expression_count = chunk.end_expression_index - chunk.start_expression_index
        logger.debug("Chunk %d: expressions %d-%d (count: %d)", i + 1,
                     chunk.start_expression_index, chunk.end_expression_index - 1,
                     chunk.expression_count)
    return chunks
