"""
expressions.py - Math expression extraction and mapping

Scans raw LaTeX for math expressions before the document is split, so the
original source of every expression (and its position) survives chunking:

  $$...$$            display   pattern "$$"
  \\[...\\]            display   pattern "\\[\\]"
  \\begin{env}...      environment, pattern = env name (star dropped)
  $...$              inline    pattern "$"
  \\(...\\)            inline    pattern "\\(\\)"

Each pass masks what it matched with same-length filler, so later passes
never re-match inside an earlier expression and positions stay exact.
"""

import logging
import re

logger = logging.getLogger(__name__)

# ============================================================================
# EXPRESSION TYPES
# ============================================================================
DISPLAY = 'display'
INLINE = 'inline'
ENVIRONMENT = 'environment'

EXTRACTED_ENVIRONMENTS = [
    'equation', 'align', 'gather', 'multline', 'eqnarray', 'alignat', 'flalign',
]

TYPE_PATTERNS = {
    DISPLAY: ('$$', '\\[\\]'),
    INLINE: ('$', '\\(\\)'),
    ENVIRONMENT: tuple(EXTRACTED_ENVIRONMENTS),
}

_MASK = '\x00'

_DISPLAY_DOLLAR_RE = re.compile(r'\$\$(.*?)\$\$', re.DOTALL)
# Negative lookbehind so \\[6pt] line breaks are not taken as display math
_DISPLAY_BRACKET_RE = re.compile(r'(?<!\\)\\\[(.*?)\\\]', re.DOTALL)
_ENVIRONMENT_RE = re.compile(
    r'\\begin\{(' + '|'.join(EXTRACTED_ENVIRONMENTS) + r')(\*?)\}'
    r'(.*?)\\end\{\1\2\}', re.DOTALL)
_INLINE_DOLLAR_RE = re.compile(r'(?<![\\$])\$(?!\$)((?:[^$\\]|\\.)+?)\$(?!\$)')
_INLINE_PAREN_RE = re.compile(r'(?<!\\)\\\((.*?)\\\)', re.DOTALL)
_CURRENCY_RE = re.compile(r'^[\d\s.,]+$')


class MathExpression:
    """One math fragment found in the source. Treated as read-only."""

    __slots__ = ('latex', 'type', 'pattern', 'position', 'index')

    def __init__(self, latex, type, pattern, position, index):
        self.latex = latex
        self.type = type
        self.pattern = pattern
        self.position = position
        self.index = index

    def to_dict(self):
        return {
            'latex': self.latex,
            'type': self.type,
            'pattern': self.pattern,
            'position': self.position,
            'index': self.index,
        }

    def __eq__(self, other):
        if not isinstance(other, MathExpression):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self):
        preview = self.latex if len(self.latex) <= 30 else self.latex[:27] + '...'
        return (f"MathExpression(#{self.index} {self.type} {self.pattern!r} "
                f"@{self.position}: {preview!r})")


# ============================================================================
# EXTRACTION
# ============================================================================
def extract_expressions(source):
    """Extract every math expression from ``source``.

    Returns:
        dict: {index: MathExpression}, indices in discovery order.
        Malformed input is tolerated; extraction is best-effort.
    """
    if not isinstance(source, str):
        logger.warning("Expression extraction skipped: input is not a string")
        return {}

    expressions = {}
    scan = source

    def record(latex, expr_type, pattern, position):
        latex = latex.strip()
        if not latex:
            return
        index = len(expressions)
        expressions[index] = MathExpression(latex, expr_type, pattern, position, index)
        logger.debug("Extracted %s math %d at %d: %.30s", pattern, index, position, latex)

    passes = [
        (_DISPLAY_DOLLAR_RE, DISPLAY, '$$'),
        (_DISPLAY_BRACKET_RE, DISPLAY, '\\[\\]'),
        (_ENVIRONMENT_RE, ENVIRONMENT, None),
        (_INLINE_DOLLAR_RE, INLINE, '$'),
        (_INLINE_PAREN_RE, INLINE, '\\(\\)'),
    ]

    for regex, expr_type, pattern in passes:
        matches = list(regex.finditer(scan))
        for m in matches:
            if expr_type == ENVIRONMENT:
                record(m.group(3), expr_type, m.group(1), m.start())
            else:
                body = m.group(1)
                if pattern == '$' and _CURRENCY_RE.match(body):
                    continue  # "$5 and $10", not math
                record(body, expr_type, pattern, m.start())
        scan = regex.sub(lambda m: _MASK * len(m.group(0)), scan)

    counts = {}
    for expr in expressions.values():
        counts[expr.type] = counts.get(expr.type, 0) + 1
    logger.info("LaTeX extraction complete: %d expressions %s", len(expressions), counts)
    return expressions


# ============================================================================
# ORDERING AND FILTERING
# ============================================================================
def order_by_position(expressions):
    """Stable sort of expressions (dict values or iterable) by position."""
    if isinstance(expressions, dict):
        expressions = expressions.values()
    try:
        return sorted(expressions, key=lambda e: e.position)
    except (TypeError, AttributeError) as e:
        logger.error("Error ordering expressions by position: %s", e)
        return []


def position_array(ordered_expressions):
    """Raw LaTeX strings of already ordered expressions."""
    return [expr.latex for expr in ordered_expressions]


def filter_by_type(expression_map, expr_type):
    if not isinstance(expression_map, dict):
        return {}
    return {i: e for i, e in expression_map.items()
            if getattr(e, 'type', None) == expr_type}


def filter_by_pattern(expression_map, pattern):
    if not isinstance(expression_map, dict):
        return {}
    return {i: e for i, e in expression_map.items()
            if getattr(e, 'pattern', None) == pattern}


def clean_expression(latex):
    """Trim and collapse internal whitespace."""
    if not isinstance(latex, str):
        return ''
    return re.sub(r'\s+', ' ', latex.strip())


def validate_expression(expr):
    """Check that an expression's type and pattern agree.

    Returns False (and logs) on a mismatch; never raises.
    """
    latex = getattr(expr, 'latex', None)
    expr_type = getattr(expr, 'type', None)
    pattern = getattr(expr, 'pattern', None)
    if not latex or not expr_type or not pattern:
        return False

    valid_patterns = TYPE_PATTERNS.get(expr_type)
    if not valid_patterns or pattern not in valid_patterns:
        logger.warning("Inconsistent type-pattern combination: %s with %s",
                       expr_type, pattern)
        return False
    return True


# ============================================================================
# SYNTAX VALIDATION
# ============================================================================
_PROBLEMATIC_COMMANDS = [
    re.compile(r'\\index\{[^}]*\}'),
    re.compile(r'\\qedhere\b'),
    re.compile(r'\\usepackage\{[^}]*\}'),
]


def validate_latex_syntax(content):
    """Flag delimiter imbalance and problematic commands.

    Returns a dict with ``valid``, ``issues``, ``warnings``, ``suggestions``
    and ``statistics``. Purely diagnostic: extraction does not depend on it.
    """
    if not isinstance(content, str) or not content:
        return {
            'valid': False,
            'issues': ['No content provided for validation'],
            'warnings': [],
            'suggestions': [],
            'statistics': {},
        }

    issues = []
    warnings = []
    suggestions = []

    unescaped = re.sub(r'\\[{}$]', '', content)
    open_braces = unescaped.count('{')
    close_braces = unescaped.count('}')
    if open_braces != close_braces:
        issues.append(
            f"Unmatched braces: {open_braces} opening, {close_braces} closing")

    if unescaped.count('$') % 2 != 0:
        issues.append("Unmatched dollar sign math delimiters")

    if len(re.findall(r'\$\$', unescaped)) % 2 != 0:
        issues.append("Unmatched display math delimiters ($$)")

    bracket_open = len(re.findall(r'(?<!\\)\\\[', content))
    bracket_close = len(re.findall(r'(?<!\\)\\\]', content))
    if bracket_open != bracket_close:
        issues.append(
            f"Unmatched bracket math: {bracket_open} \\[, {bracket_close} \\]")

    paren_open = len(re.findall(r'(?<!\\)\\\(', content))
    paren_close = len(re.findall(r'(?<!\\)\\\)', content))
    if paren_open != paren_close:
        issues.append(
            f"Unmatched parenthesis math: {paren_open} \\(, {paren_close} \\)")

    for regex in _PROBLEMATIC_COMMANDS:
        found = regex.findall(content)
        if found:
            warnings.append(
                f"Found {len(found)} potentially problematic command(s): {found[0]}")
            suggestions.append(
                "Consider removing document-level commands for web conversion")

    if issues:
        logger.warning("LaTeX validation issues: %s", ', '.join(issues))

    return {
        'valid': not issues,
        'issues': issues,
        'warnings': warnings,
        'suggestions': suggestions,
        'statistics': {
            'length': len(content),
            'commands': len(re.findall(r'\\[a-zA-Z]+', content)),
        },
    }
