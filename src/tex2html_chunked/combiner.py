"""
combiner.py - Chunk recombination

Joins processed chunk outputs into one HTML document, in order:

  1. concatenate: each output is parsed on its own into a wrapper div, so an
     unclosed tag in one chunk cannot swallow the next; wrappers are then
     unwrapped
  2. renumber sections (only with --number-sections)
  3. drop duplicate hypertarget anchors
  4. clear the in-progress flag and repair cross-references

Running combine again on its own output changes nothing.
"""

import logging

from .cleaner import OutputCleaner
from .htmltree import (
    find_by_id_prefix, find_headings, heading_level, heading_text,
    is_hypertarget, parse_fragment, set_heading_number, to_html,
)

logger = logging.getLogger(__name__)

_TITLE_WORDS = ('test', 'document', 'manual', 'guide')
_TITLE_MIN_LENGTH = 30


# ============================================================================
# CONCATENATION
# ============================================================================
def concatenate_outputs(processed):
    """Structure-preserving concatenation of chunk outputs, in list order."""
    soup = parse_fragment('')
    wrappers = []
    for index, chunk in enumerate(processed):
        if not chunk.output:
            continue
        wrapper = soup.new_tag('div', attrs={
            'class': f'chunk-content chunk-{index}',
            'data-chunk-index': str(index),
            'data-expression-range':
                f'{chunk.start_expression_index or 0}-{chunk.end_expression_index or 0}',
        })
        fragment = parse_fragment(chunk.output)
        for node in list(fragment.contents):
            wrapper.append(node.extract())
        if wrappers:
            soup.append('\n')
        soup.append(wrapper)
        wrappers.append(wrapper)

    for wrapper in wrappers:
        wrapper.unwrap()
    return to_html(soup)


# ============================================================================
# SECTION NUMBERING
# ============================================================================
def looks_like_title(text):
    lowered = text.lower()
    return len(text) > _TITLE_MIN_LENGTH or any(w in lowered for w in _TITLE_WORDS)


def add_sequential_section_numbering(html):
    """Number h1-h6 headings depth-first across the whole document.

    The first h1 is left alone when it looks like a document title. Existing
    leading numbers are replaced, so chunk-local numbering disappears.
    """
    try:
        soup = parse_fragment(html)
        counters = [0, 0, 0, 0, 0, 0]
        seen_first_h1 = False

        for heading in find_headings(soup):
            level = heading_level(heading) - 1
            if level == 0 and not seen_first_h1:
                seen_first_h1 = True
                if looks_like_title(heading_text(heading)):
                    logger.debug("Skipping title heading: %s", heading_text(heading))
                    continue

            counters[level] += 1
            for i in range(level + 1, 6):
                counters[i] = 0

            number = '.'.join(str(n) for n in counters[:level + 1] if n > 0)
            if number:
                set_heading_number(heading, number)

        return to_html(soup)
    except (TypeError, ValueError, AttributeError) as e:
        logger.error("Error adding sequential section numbering: %s", e)
        return html


# ============================================================================
# ANCHOR DEDUPLICATION
# ============================================================================
def deduplicate_anchors(html):
    """Keep the first empty hypertarget span per content- id.

    Headings, divs and labelled spans that share an id are structural and
    always kept.

    Returns:
        (html, stats)
    """
    stats = {
        'duplicates_removed': 0,
        'unique_hypertargets': 0,
        'total_processed': 0,
        'structural_elements_preserved': 0,
    }
    try:
        soup = parse_fragment(html)
        seen = set()
        duplicates = []
        for element in find_by_id_prefix(soup):
            stats['total_processed'] += 1
            if not is_hypertarget(element):
                stats['structural_elements_preserved'] += 1
                logger.debug("Preserving structural element: <%s id=%r>",
                             element.name, element['id'])
                continue
            if element['id'] in seen:
                duplicates.append(element)
            else:
                seen.add(element['id'])

        for element in duplicates:
            element.decompose()

        stats['duplicates_removed'] = len(duplicates)
        stats['unique_hypertargets'] = len(seen)
        if not duplicates:
            return html, stats
        logger.info("Removed %d duplicate hypertarget anchors (%d unique, %d structural preserved)",
                    len(duplicates), len(seen), stats['structural_elements_preserved'])
        return to_html(soup), stats
    except (TypeError, AttributeError) as e:
        logger.error("Error deduplicating anchors: %s", e)
        return html, stats


# ============================================================================
# VALIDATION
# ============================================================================
def validate_chunk_combination(html, processed):
    """Compare rendered math containers with the expressions the chunks own.

    Diagnostic only: a mismatch is logged and reported, never fixed.
    """
    try:
        soup = parse_fragment(html)
        found = len(soup.select('span.math, mjx-container, [class*="math"]'))
        expected = sum(chunk.expression_count or 0 for chunk in processed)
        if found != expected:
            logger.warning("Math container mismatch: found %d, expected %d", found, expected)
            return False
        logger.debug("Chunk combination validation passed")
        return True
    except (TypeError, AttributeError, ValueError) as e:
        logger.error("Error validating chunk combination: %s", e)
        return False


# ============================================================================
# COMBINE
# ============================================================================
def fallback_join(processed):
    return '\n\n'.join(
        chunk.output or f'<p>Error processing: {chunk.title}</p>'
        for chunk in processed)


def combine_chunks(processed, args_text, original_latex, state=None, cleaner=None,
                   registry=None):
    """Combine processed chunks into the final HTML.

    ``state`` is the object carrying the ``is_processing`` flag; it is
    cleared before cross-reference repair, and on failure. The labels of
    ``registry`` (when given) drive cross-reference repair.
    """
    try:
        html = concatenate_outputs(processed)
        logger.info("Combined %d chunks with structure preservation", len(processed))

        if '--number-sections' in (args_text or ''):
            html = add_sequential_section_numbering(html)
            logger.info("Applied sequential section numbering to combined chunks")

        html, stats = deduplicate_anchors(html)
        if not stats['duplicates_removed']:
            logger.debug("No duplicate anchors found")

        if state is not None:
            state.is_processing = False

        cleaner = cleaner or OutputCleaner()
        labels = registry.labels if registry is not None else None
        return cleaner.clean_pandoc_output(html, original_latex, is_chunked_processing=False,
                                           labels=labels)
    except Exception as e:
        logger.error("Error combining processed chunks: %s", e)
        if state is not None:
            state.is_processing = False
        return fallback_join(processed)
