"""
balance.py - Chunk wrapping and math environment balancing

Splitting a document at section boundaries (or worse, at a fixed size) can
cut an align or equation in half. Each half then carries an orphan tag:

  chunk 1:  ... \\begin{align} x &= 1 \\\\          <- \\end fell into chunk 2
  chunk 2:  y &= 2 \\end{align} ...             <- \\begin stayed in chunk 1

The balancer removes orphan tags of MATH environments only. Inserting an
empty \\begin{align}\\end{align} pair instead produces invalid empty math.
Theorem-like environments keep their orphans: removing them would delete
prose.
"""

import logging
import re

from .config import DEFAULT_PREAMBLE

logger = logging.getLogger(__name__)

# ============================================================================
# ENVIRONMENT SETS
# ============================================================================
_MATH_BASE_NAMES = [
    'equation', 'align', 'alignat', 'gather', 'multline', 'split',
    'flalign', 'eqnarray', 'math', 'displaymath',
]
MATH_ENVIRONMENTS = frozenset(
    _MATH_BASE_NAMES + [name + '*' for name in _MATH_BASE_NAMES])

_ENV_TAG_RE = re.compile(r'\\(begin|end)\{([^}]+)\}')
_COMMENT_RE = re.compile(r'(?<!\\)%')


# ============================================================================
# COMMENT STRIPPING
# ============================================================================
def strip_comments(text):
    """Remove LaTeX comments (% to end-of-line, unless escaped)."""
    lines = text.split('\n')
    result = []
    for line in lines:
        cleaned = re.sub(r'(?<!\\)%.*$', '', line)
        result.append(cleaned)
    return '\n'.join(result)


def _live_ranges(text):
    """Yield (start, end) offsets of the uncommented part of each line."""
    offset = 0
    for line in text.split('\n'):
        m = _COMMENT_RE.search(line)
        yield offset, offset + (m.start() if m else len(line))
        offset += len(line) + 1


# ============================================================================
# ENVIRONMENT SCANNER
# ============================================================================
class EnvironmentTag:
    """A single \\begin{name} or \\end{name} occurrence."""

    __slots__ = ('kind', 'name', 'start', 'end')

    def __init__(self, kind, name, start, end):
        self.kind = kind
        self.name = name
        self.start = start
        self.end = end

    def __repr__(self):
        return f"EnvironmentTag({self.kind}{{{self.name}}} {self.start}:{self.end})"


class EnvironmentSpan:
    """A matched (or orphaned) environment.

    ``start`` is None for an orphan \\end, ``end`` is None for an orphan
    \\begin. ``depth`` counts the environments open around it.
    """

    __slots__ = ('name', 'start', 'end', 'depth')

    def __init__(self, name, start, end, depth):
        self.name = name
        self.start = start
        self.end = end
        self.depth = depth

    @property
    def is_orphan(self):
        return self.start is None or self.end is None

    def __repr__(self):
        return (f"EnvironmentSpan({self.name!r}, start={self.start}, "
                f"end={self.end}, depth={self.depth})")


def iter_environment_tags(text):
    """Yield EnvironmentTag objects in order, ignoring commented-out tags."""
    for start, end in _live_ranges(text):
        for m in _ENV_TAG_RE.finditer(text, start, end):
            yield EnvironmentTag(m.group(1), m.group(2), m.start(), m.end())


def scan_environments(text):
    """Match \\begin/\\end tags with a depth-counting stack.

    Returns EnvironmentSpan records sorted by where they begin (orphan ends
    sort at their own position).
    """
    spans = []
    stack = []  # [(name, start, depth)]
    for tag in iter_environment_tags(text):
        if tag.kind == 'begin':
            stack.append((tag.name, tag.start, len(stack)))
            continue
        for i in range(len(stack) - 1, -1, -1):
            if stack[i][0] == tag.name:
                name, start, depth = stack.pop(i)
                spans.append(EnvironmentSpan(name, start, tag.end, depth))
                break
        else:
            spans.append(EnvironmentSpan(tag.name, None, tag.end, len(stack)))
    for name, start, depth in stack:
        spans.append(EnvironmentSpan(name, start, None, depth))

    spans.sort(key=lambda s: s.start if s.start is not None else s.end)
    return spans


# ============================================================================
# BALANCING
# ============================================================================
def _orphan_tags(tags):
    """Split one environment's tags into (orphan ends, unmatched begins).

    Unmatched begins are the last N \\begin tags, N being how many are
    still open once the tags have been scanned.
    """
    depth = 0
    orphan_ends = []
    for tag in tags:
        if tag.kind == 'begin':
            depth += 1
        elif depth:
            depth -= 1
        else:
            orphan_ends.append(tag)
    begins = [tag for tag in tags if tag.kind == 'begin']
    return orphan_ends, begins[len(begins) - depth:] if depth else []


def _end_removal_start(content, tag):
    """Start offset for removing an orphan \\end, taking a preceding newline
    with it unless that would pull the line into a comment."""
    if tag.start == 0 or content[tag.start - 1] != '\n':
        return tag.start
    line_start = content.rfind('\n', 0, tag.start - 1) + 1
    if _COMMENT_RE.search(content, line_start, tag.start - 1):
        return tag.start
    return tag.start - 1


def balance_math_environments(content):
    """Remove orphan \\begin/\\end tags of math environments.

    Orphan \\end tags (no open \\begin before them) come from an environment
    that started in the previous chunk; unmatched \\begin tags open an
    environment whose \\end is in the next chunk. Both are removed, tag only.
    Balanced input is returned unchanged.
    """
    try:
        tags = list(iter_environment_tags(content))
    except (TypeError, AttributeError):
        logger.warning("Balancing skipped: content is not a string")
        return content

    by_name = {}
    for tag in tags:
        if tag.name != 'document':
            by_name.setdefault(tag.name, []).append(tag)

    removals = []
    for name, env_tags in sorted(by_name.items()):
        orphan_ends, open_begins = _orphan_tags(env_tags)
        if not orphan_ends and not open_begins:
            continue
        if name not in MATH_ENVIRONMENTS:
            logger.debug("Leaving orphan tags of \\begin{%s} alone: not a math environment", name)
            continue
        for tag in orphan_ends:
            removals.append((_end_removal_start(content, tag), tag.end))
        for tag in open_begins:
            removals.append((tag.start, tag.end))
        logger.info("Environment balancing: removed %d orphan \\end{%s}, %d orphan \\begin{%s}",
                    len(orphan_ends), name, len(open_begins), name)

    if not removals:
        return content

    balanced = content
    for start, end in sorted(removals, reverse=True):
        balanced = balanced[:start] + balanced[end:]
    return balanced


# ============================================================================
# DOCUMENT WRAPPING
# ============================================================================
_METADATA_RES = [
    re.compile(r'\\title\{[^}]*\}'),
    re.compile(r'\\author\{[^}]*\}'),
    re.compile(r'\\date\{[^}]*\}'),
    re.compile(r'\\maketitle'),
]

_STRUCTURE_RES = [
    re.compile(r'\\documentclass(?:\[[^\]]*\])?\{[^}]+\}'),
    re.compile(r'\\usepackage(?:\[[^\]]*\])?\{[^}]*\}'),
    re.compile(r'\\begin\{document\}'),
    re.compile(r'\\end\{document\}'),
]


def _strip_metadata(text):
    for regex in _METADATA_RES:
        text = regex.sub('', text)
    return text


def wrap_content_in_document(preamble, content, is_first_chunk=False):
    """Wrap a chunk in a minimal self-contained LaTeX document.

    Only the first chunk keeps \\title, \\author, \\date and \\maketitle.
    Document-structure commands that leaked into ``content`` are removed and
    math environments are balanced before wrapping.
    """
    try:
        clean_preamble = re.sub(r'\\begin\{document\}.*$', '', preamble, flags=re.DOTALL).strip()
        if not is_first_chunk:
            clean_preamble = _strip_metadata(clean_preamble)

        if '\\documentclass' not in clean_preamble:
            clean_preamble = '\\documentclass{article}\n' + clean_preamble
        if 'amsmath' not in clean_preamble:
            clean_preamble += '\n\\usepackage{amsmath,amssymb,amsthm}'

        clean_content = content
        for regex in _STRUCTURE_RES:
            clean_content = regex.sub('', clean_content)
        clean_content = clean_content.strip()
        if not is_first_chunk:
            clean_content = _strip_metadata(clean_content)

        clean_content = balance_math_environments(clean_content)

        return (clean_preamble + '\n'
                + '\\begin{document}\n'
                + clean_content + '\n'
                + '\\end{document}')
    except (TypeError, AttributeError) as e:
        logger.error("Error wrapping content in document structure: %s", e)
        return (DEFAULT_PREAMBLE + '\\begin{document}\n'
                + str(content) + '\n\\end{document}')
