"""
processor.py - Single chunk conversion

Converts one wrapped chunk with the external converter, bounded by a
timeout. \\hypertarget sentinels are taken out before conversion (Pandoc
trips over them inside some nested environments) and put back afterwards
as HTML anchor spans.

Failures are raised to the caller, which turns them into error chunks via
create_error_chunk() and carries on with the next chunk.
"""

import asyncio
import functools
import html as html_lib
import inspect
import logging
import re
import time

from .cleaner import OutputCleaner
from .config import DEFAULT_CHUNK_TIMEOUT
from .crossref import ANCHOR_PREFIX

logger = logging.getLogger(__name__)

_NUMBER_SECTIONS_RE = re.compile(r'--number-sections\s*')
_HYPERTARGET_RE = re.compile(r'\n?\\hypertarget\{([^}]+)\}\{\}')
_BODY_OPEN_RE = re.compile(r'<body[^>]*>', re.IGNORECASE)


class ChunkTimeoutError(TimeoutError):
    """A chunk conversion did not finish within its time limit."""

    def __init__(self, chunk_number, timeout):
        self.chunk_number = chunk_number
        self.timeout = timeout
        super().__init__(f"Chunk {chunk_number} processing timeout")


# ============================================================================
# PRE / POST CONVERSION
# ============================================================================
def strip_number_sections(args_text):
    """Section numbering is applied once after combination, not per chunk."""
    if '--number-sections' not in (args_text or ''):
        return args_text or ''
    return _NUMBER_SECTIONS_RE.sub('', args_text).strip()


def strip_hypertargets(content):
    """Remove \\hypertarget{label}{} sentinels.

    Returns:
        (stripped_content, [label, ...]) with labels in source order.
    """
    labels = _HYPERTARGET_RE.findall(content)
    if not labels:
        return content, []
    return _HYPERTARGET_RE.sub('', content), labels


def anchor_span(label):
    return (f'<span id="{ANCHOR_PREFIX}{html_lib.escape(label, quote=True)}" '
            f'class="cross-ref-anchor"></span>')


def inject_html_anchors(html, labels):
    """Add an anchor span for every label that has no element with its id yet.

    Spans go right after the opening <body> tag, or at the very start of a
    fragment.
    """
    injected = 0
    for label in labels:
        anchor_id = ANCHOR_PREFIX + html_lib.escape(label, quote=True)
        if re.search(r'id=["\']' + re.escape(anchor_id) + r'["\']', html):
            logger.debug("Anchor %s already present, skipping injection", anchor_id)
            continue
        span = anchor_span(label)
        m = _BODY_OPEN_RE.search(html)
        if m:
            html = html[:m.end()] + '\n' + span + html[m.end():]
        else:
            html = span + '\n' + html
        injected += 1

    if injected:
        logger.info("Injected %d HTML anchors for stripped hypertargets", injected)
    return html


# ============================================================================
# CONVERSION
# ============================================================================
def _is_async_callable(convert):
    return (inspect.iscoroutinefunction(convert)
            or inspect.iscoroutinefunction(getattr(convert, '__call__', None)))


async def _run_converter(convert, args_text, content, executor=None):
    if _is_async_callable(convert):
        result = await convert(args_text, content)
    elif executor is None:
        # Blocking converters run in a worker thread so the timeout can fire.
        result = await asyncio.to_thread(convert, args_text, content)
    else:
        loop = asyncio.get_running_loop()
        result = await loop.run_in_executor(
            executor, functools.partial(convert, args_text, content))
    if inspect.isawaitable(result):
        result = await result
    return result


async def process_chunk(chunk, args_text, convert, chunk_number,
                        timeout=DEFAULT_CHUNK_TIMEOUT, cleaner=None, executor=None):
    """Convert one chunk and return a processed copy of it.

    Blocking converters run on ``executor`` when one is given, else on the
    event loop's default executor.

    Raises:
        ChunkTimeoutError: conversion took longer than ``timeout`` seconds.
        Exception: whatever the converter raised.
    """
    chunk_args = strip_number_sections(args_text)
    content, labels = strip_hypertargets(chunk.content)
    logger.info("[CHUNK %d] Title: %s, Content: %d chars, Hypertargets stripped: %d",
                chunk_number, chunk.title, len(chunk.content), len(labels))

    try:
        output = await asyncio.wait_for(
            _run_converter(convert, chunk_args, content, executor), timeout)
    except asyncio.TimeoutError:
        logger.error("[CHUNK %d] Conversion timed out after %.2fs", chunk_number, timeout)
        raise ChunkTimeoutError(chunk_number, timeout) from None

    if not isinstance(output, str):
        raise TypeError(
            f"Converter returned {type(output).__name__} for chunk {chunk_number}, expected str")
    logger.debug("[CHUNK %d] Conversion successful", chunk_number)

    output = inject_html_anchors(output, labels)
    cleaner = cleaner or OutputCleaner()
    output = cleaner.clean_pandoc_output(output, chunk.content, is_chunked_processing=True)

    processed = chunk.copy()
    processed.output = output
    processed.has_error = False
    processed.processed_at = time.time()
    processed.hypertarget_labels = labels
    return processed


# ============================================================================
# ERROR CHUNKS
# ============================================================================
def user_friendly_chunk_error(error, chunk_number):
    message = str(error) or type(error).__name__

    if 'timeout' in message or isinstance(error, TimeoutError):
        return (f"Section {chunk_number} processing timed out. "
                "This section may be too complex.")
    if 'memory' in message or 'Stack space' in message or isinstance(error, MemoryError):
        return (f"Section {chunk_number} requires too much memory. "
                "Try simplifying mathematical expressions.")
    if 'syntax' in message or 'parse' in message:
        return (f"LaTeX syntax error in section {chunk_number}. "
                "Please check mathematical expressions.")
    return (f"Processing error in section {chunk_number}. "
            "Please check content and try again.")


def create_error_chunk(chunk, error, chunk_number):
    """A processed copy of ``chunk`` whose output is an inline error message."""
    message = user_friendly_chunk_error(error, chunk_number)
    processed = chunk.copy()
    processed.output = (
        f'<div class="error-message"><strong>Error processing section '
        f'"{html_lib.escape(chunk.title, quote=False)}":</strong> {message}</div>')
    processed.has_error = True
    processed.error = str(error) or type(error).__name__
    processed.processed_at = time.time()
    return processed
