"""
cleaner.py - Converter output cleaning and cross-reference repair

Pandoc may hand back a complete HTML document (with --standalone) or a
fragment. The cleaner reduces both to body content, keeps a single title
block, and, once chunking is over, repairs links between chunks:

  <a href="#eq1" data-reference="eq1">[eq1]</a>
    -> <a href="#content-eq1" data-reference="eq1">(3)</a>

Label numbers come from the original LaTeX (equations) or from the
numbered heading the anchor sits under (sections).
"""

import logging
import re

from . import crossref
from .crossref import ANCHOR_PREFIX
from .htmltree import HEADING_TAGS, heading_number, parse_fragment, to_html

logger = logging.getLogger(__name__)

_BODY_RE = re.compile(r'<body[^>]*>(.*?)</body>', re.IGNORECASE | re.DOTALL)
_HEAD_RES = [
    re.compile(r'<head[\s\S]*?</head>', re.IGNORECASE),
    re.compile(r'<meta[^>]*>', re.IGNORECASE),
    re.compile(r'<link[^>]*>', re.IGNORECASE),
    re.compile(r'<style[\s\S]*?</style>', re.IGNORECASE),
    re.compile(r'<script[\s\S]*?</script>', re.IGNORECASE),
]
_TITLE_BLOCK_RE = re.compile(r'<header id="title-block-header">[\s\S]*?</header>')


class OutputCleaner:
    """Normalises converter HTML and fixes cross-references."""

    def clean_pandoc_output(self, html, original_latex=None, is_chunked_processing=False,
                            labels=None):
        """Return body-only HTML with one title block and, when
        ``original_latex`` is given outside chunking, repaired references.

        ``labels`` is a ready label map (as in ExtractionRegistry.labels);
        without it labels are read from ``original_latex``.
        """
        if not html or not isinstance(html, str):
            logger.warning("Invalid output provided to clean_pandoc_output")
            return ''

        content = self.extract_body_content(html)
        if content is html:
            content = self.remove_head_elements(content)
        content = self.remove_duplicate_title_blocks(content).strip()

        if original_latex and not is_chunked_processing:
            content = self.fix_cross_references(content, original_latex, labels)
        elif original_latex:
            logger.debug("Chunked processing active: deferring cross-reference fixing")
        return content

    # ========================================================================
    # STRUCTURE
    # ========================================================================
    def extract_body_content(self, html):
        """Inner HTML of <body> for complete documents, else ``html`` itself."""
        if '<html' not in html or '<body' not in html:
            return html
        m = _BODY_RE.search(html)
        if not m:
            logger.warning("Body tag found but content extraction failed")
            return html
        logger.debug("Extracted body content from complete HTML document")
        return m.group(1)

    def remove_head_elements(self, html):
        removed = 0
        for regex in _HEAD_RES:
            html, n = regex.subn('', html)
            removed += n
        if removed:
            logger.debug("Removed %d head elements from HTML content", removed)
        return html

    def remove_duplicate_title_blocks(self, html):
        """Keep the first <header id="title-block-header"> and drop the rest."""
        seen = []

        def keep_first(m):
            seen.append(m)
            return m.group(0) if len(seen) == 1 else ''

        cleaned = _TITLE_BLOCK_RE.sub(keep_first, html)
        if len(seen) > 1:
            logger.info("Removed %d duplicate title blocks", len(seen) - 1)
            return cleaned
        return html

    # ========================================================================
    # CROSS-REFERENCES
    # ========================================================================
    def fix_cross_references(self, html, original_latex, labels=None):
        """Point reference links at content- anchors and fill in numbers.

        Returns ``html`` untouched when there is nothing to fix.
        """
        try:
            soup = parse_fragment(html)
            links = [a for a in soup.find_all('a', href=True)
                     if a['href'].startswith('#') or a.has_attr('data-reference')]
            if not links:
                return html

            if labels is None:
                labels = crossref.extract_labels(original_latex)
            equation_numbers = crossref.calculate_equation_numbers(original_latex)
            changed = 0
            for link in links:
                label = self._link_label(link)
                if not label:
                    continue

                target = ANCHOR_PREFIX + label
                if link['href'] != '#' + target and soup.find(id=target) is not None:
                    link['href'] = '#' + target
                    changed += 1

                if link.get_text() == f'[{label}]':
                    number = self._label_number(soup, label, labels, equation_numbers)
                    if number is not None:
                        if link.get('data-reference-type') == 'eqref':
                            number = f'({number})'
                        link.string = number
                        changed += 1

            if not changed:
                return html
            logger.info("Cross-reference fixing: %d link updates", changed)
            return to_html(soup)
        except (TypeError, AttributeError, ValueError) as e:
            logger.error("Error during cross-reference fixing: %s", e)
            return html

    def _link_label(self, link):
        label = link.get('data-reference') or link['href'][1:]
        if label.startswith(ANCHOR_PREFIX):
            label = label[len(ANCHOR_PREFIX):]
        return label

    def _label_number(self, soup, label, labels, equation_numbers):
        if label in equation_numbers:
            return equation_numbers[label]
        info = labels.get(label)
        if info is None or info['type'] != 'section':
            return None

        element = soup.find(id=label)
        if element is None or element.name not in HEADING_TAGS:
            element = soup.find(id=ANCHOR_PREFIX + label)
            if element is not None and element.name not in HEADING_TAGS:
                element = element.find_previous(HEADING_TAGS)
        if element is None:
            return None
        return heading_number(element)
