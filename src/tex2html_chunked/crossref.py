"""
crossref.py - Cross-reference preprocessing

Runs on the FULL document before it is split. Every \\label{x} that sits
outside math gets a \\hypertarget{x}{} right after it, so each chunk carries
the anchors of the labels it owns. The chunk processor later strips these
sentinels before conversion and re-injects them as
<span id="content-x" class="cross-ref-anchor"></span>.

Labels inside math are skipped: several labels in one align would all end
up at the same place. The output cleaner resolves those from computed
equation numbers instead.
"""

import logging
import re

from .balance import strip_comments

logger = logging.getLogger(__name__)

ANCHOR_PREFIX = 'content-'

_LABEL_RE = re.compile(r'\\label\{([^}]+)\}')
_REFERENCE_RES = [
    (re.compile(r'\\ref\{([^}]+)\}'), 'ref'),
    (re.compile(r'\\eqref\{([^}]+)\}'), 'eqref'),
    (re.compile(r'\\pageref\{([^}]+)\}'), 'pageref'),
]

_MATH_ENVS = r'(?:equation|align|gather|multline|alignat|split|flalign|eqnarray)\*?'
_MATH_BEGIN_RE = re.compile(r'\\begin\{' + _MATH_ENVS + r'\}|(?<!\\)\\\[')
_MATH_END_RE = re.compile(r'\\end\{' + _MATH_ENVS + r'\}|(?<!\\)\\\]')

_HYPERTARGET_RE = re.compile(r'\\hypertarget\{([^}]+)\}\{\}')


def has_anchor_markers(text):
    """True if an upstream step already injected anchors into ``text``."""
    return '[]{#content-' in text or '\\hypertarget{' in text


# ============================================================================
# LABEL AND REFERENCE EXTRACTION
# ============================================================================
def detect_label_type(latex, position):
    """Guess what a label at ``position`` names from the 200 chars before it."""
    look_behind = latex[max(0, position - 200):position]

    if re.search(r'\\begin\{(theorem|lemma|proposition|corollary|definition|'
                 r'example|remark|proof)\}', look_behind, re.IGNORECASE):
        return 'theorem'
    if re.search(r'\\begin\{(equation|align|gather|multline)\*?\}|\\\[', look_behind):
        return 'equation'
    if re.search(r'\\begin\{figure\}', look_behind, re.IGNORECASE):
        return 'figure'
    if re.search(r'\\begin\{table\}', look_behind, re.IGNORECASE):
        return 'table'
    if re.search(r'\\(sub)*section\*?\{', look_behind):
        return 'section'
    return 'generic'


def extract_labels(latex):
    """Return {label: {"name", "position", "type"}} for the first use of each label."""
    labels = {}
    for m in _LABEL_RE.finditer(latex):
        name = m.group(1)
        if name in labels:
            logger.warning("Duplicate label found: %s at position %d", name, m.start())
            continue
        labels[name] = {
            'name': name,
            'position': m.start(),
            'type': detect_label_type(latex, m.start()),
        }
    logger.debug("Extracted %d labels", len(labels))
    return labels


def extract_references(latex):
    """Return {label: [{"type", "position"}, ...]} for \\ref, \\eqref, \\pageref."""
    references = {}
    for regex, ref_type in _REFERENCE_RES:
        for m in regex.finditer(latex):
            references.setdefault(m.group(1), []).append({
                'type': ref_type,
                'position': m.start(),
            })
    for refs in references.values():
        refs.sort(key=lambda r: r['position'])
    return references


# ============================================================================
# ANCHOR INJECTION
# ============================================================================
def _math_depth_at(boundaries, position):
    depth = 0
    for pos, kind in boundaries:
        if pos >= position:
            break
        depth += 1 if kind == 'begin' else -1
    return depth


def inject_anchors(latex):
    """Append \\hypertarget{label}{} after every \\label{label} outside math.

    Returns:
        (new_latex, injected_count, skipped_math_count)
    """
    boundaries = [(m.start(), 'begin') for m in _MATH_BEGIN_RE.finditer(latex)]
    boundaries += [(m.start(), 'end') for m in _MATH_END_RE.finditer(latex)]
    boundaries.sort()

    pieces = []
    last = 0
    injected = 0
    skipped = 0
    for m in _LABEL_RE.finditer(latex):
        pieces.append(latex[last:m.end()])
        last = m.end()
        if _math_depth_at(boundaries, m.start()) > 0:
            skipped += 1
            continue
        target = f'\\hypertarget{{{m.group(1)}}}{{}}'
        if latex.startswith(target, m.end()):
            continue  # already injected
        pieces.append(target)
        injected += 1
    pieces.append(latex[last:])

    logger.info("Injected %d \\hypertarget anchors (skipped %d equation labels)",
                injected, skipped)
    return ''.join(pieces), injected, skipped


# ============================================================================
# EQUATION NUMBERING
# ============================================================================
_NUMBERED_ENV_RE = re.compile(
    r'\\begin\{(equation|multline|align|gather|flalign|alignat|eqnarray)(\*?)\}'
    r'(.*?)\\end\{\1\2\}', re.DOTALL)
_SINGLE_NUMBER_ENVS = ('equation', 'multline')
_ROW_SPLIT_RE = re.compile(r'\\\\(?:\[[^\]]*\])?')
_NONUMBER_RE = re.compile(r'\\(?:nonumber|notag)\b')
_TAG_RE = re.compile(r'\\tag\*?\{([^}]*)\}')


def calculate_equation_numbers(latex):
    """Map equation labels to the number LaTeX would print for them.

    Unstarred equation/multline get one number; align-like environments get
    one per row. \\nonumber and \\notag suppress a number, \\tag{..} replaces it.
    """
    numbers = {}
    counter = 0
    for m in _NUMBERED_ENV_RE.finditer(strip_comments(latex)):
        env, starred, body = m.group(1), m.group(2) == '*', m.group(3)
        rows = [body] if env in _SINGLE_NUMBER_ENVS else _ROW_SPLIT_RE.split(body)
        for row in rows:
            tag = _TAG_RE.search(row)
            if tag:
                number = tag.group(1)
            elif starred or _NONUMBER_RE.search(row) or not row.strip():
                number = None
            else:
                counter += 1
                number = str(counter)
            if number is None:
                continue
            for label in _LABEL_RE.findall(row):
                numbers[label] = number
    return numbers


# ============================================================================
# PREPROCESSING ENTRY POINT
# ============================================================================
def preprocess_latex(latex):
    """Inject anchors into the full document and report what was found.

    Returns:
        dict with "success", "latex" and "statistics"
        (labels_found, anchors_injected, references_found, orphaned_references).
    """
    try:
        labels = extract_labels(latex)
        references = extract_references(latex)
        new_latex, injected, _ = inject_anchors(latex)
    except (TypeError, re.error) as e:
        logger.error("Cross-reference preprocessing error: %s", e)
        return {'success': False, 'latex': latex, 'error': str(e), 'statistics': {}}

    orphaned = sorted(name for name in references if name not in labels)
    if orphaned:
        logger.warning("Found %d orphaned references: %s",
                       len(orphaned), ', '.join(orphaned))

    return {
        'success': True,
        'latex': new_latex,
        'statistics': {
            'labels_found': len(labels),
            'anchors_injected': injected,
            'references_found': sum(len(v) for v in references.values()),
            'orphaned_references': orphaned,
        },
    }


def count_anchor_markers(latex):
    """(hypertarget count, markdown anchor count) in ``latex``."""
    return (len(_HYPERTARGET_RE.findall(latex)),
            latex.count('[]{#content-'))
