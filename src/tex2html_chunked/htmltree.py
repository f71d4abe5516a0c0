"""
htmltree.py - HTML tree helpers

Thin layer over BeautifulSoup (html.parser) used by the processor, combiner
and output cleaner. Everything that walks converted HTML goes through here
so the parser choice lives in one place.
"""

import re

from bs4 import BeautifulSoup, Comment, NavigableString

from .crossref import ANCHOR_PREFIX

HEADING_TAGS = ['h1', 'h2', 'h3', 'h4', 'h5', 'h6']

# "1 ", "2.3 ", "1.2.3 " - not "1-1" notation
SECTION_NUMBER_RE = re.compile(r'^(?:\d+\.)*\d+\s+')


def parse_fragment(html):
    return BeautifulSoup(html or '', 'html.parser')


def to_html(soup):
    return str(soup)


def find_headings(soup):
    """All h1-h6 elements in document order."""
    return soup.find_all(HEADING_TAGS)


def find_by_id_prefix(soup, prefix=ANCHOR_PREFIX):
    return soup.find_all(id=re.compile('^' + re.escape(prefix)))


def is_hypertarget(element):
    """True for an empty <span> anchor, as opposed to a structural element
    (heading, div, labelled span) that merely shares the id prefix."""
    return (element.name == 'span'
            and not element.decode_contents().strip()
            and not element.has_attr('data-original-label'))


def heading_level(heading):
    return int(heading.name[1])


def heading_text(heading):
    """Visible heading text with any leading section number removed."""
    text = heading.get_text().lstrip()
    return SECTION_NUMBER_RE.sub('', text).strip()


def heading_number(heading):
    """The section number a heading currently shows, or None."""
    marker = heading.find('span', class_='header-section-number')
    if marker is not None:
        return marker.get_text().strip() or None
    m = SECTION_NUMBER_RE.match(heading.get_text().lstrip())
    return m.group(0).strip() if m else None


def set_heading_number(heading, number):
    """Show ``number`` in front of a heading, replacing an existing number.

    The number goes in the heading's own leading text, never inside a child
    element, so inline markup (math, emphasis) is left untouched. It is
    always followed by a space, which is what lets a later pass recognise it.
    """
    marker = heading.find('span', class_='header-section-number')
    if marker is not None:
        marker.string = number
        heading['data-number'] = number
        return

    first = heading.contents[0] if heading.contents else None
    if isinstance(first, NavigableString) and not isinstance(first, Comment):
        rest = SECTION_NUMBER_RE.sub('', str(first).lstrip())
        first.replace_with(NavigableString(f'{number} {rest}'))
    else:
        heading.insert(0, NavigableString(f'{number} '))
