"""
engine.py - Chunked processing orchestration

Runs a whole document through the pipeline:

  [1] cross-reference preprocessing (anchor injection on the full source)
  [2] expression extraction into a fresh registry
  [3] split + expression ranges
  [4] sequential per-chunk conversion with timeout; failures become error chunks
  [5] combine, then restore environment wrappers

Only a missing converter is a hard failure. Everything else degrades inside
the returned HTML.
"""

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor

from . import crossref
from .cleaner import OutputCleaner
from .combiner import combine_chunks, validate_chunk_combination
from .config import ChunkConfig
from .processor import create_error_chunk, process_chunk
from .registry import ExtractionRegistry
from .splitter import assign_expression_ranges, split_document

logger = logging.getLogger(__name__)

FINGERPRINT_LENGTH = 100


# ============================================================================
# COLLABORATORS
# ============================================================================
class ProgressReporter:
    """Receives progress updates. The default does nothing."""

    def set_loading(self, message, percent):
        pass


class EquationCounterService:
    """Equation numbering hooks for a downstream math renderer.

    The defaults do nothing; subclass to reset a renderer's counter, record
    source environments, or restore environment wrappers in the HTML.
    """

    def reset_equation_counter(self):
        pass

    def register_source_environments(self, latex):
        return 0

    def restore_environment_wrappers_in_html(self, html):
        return html


# ============================================================================
# RESULT
# ============================================================================
class ChunkedResult:
    """Outcome of one chunked conversion run."""

    def __init__(self, success, output=None, chunks_processed=0,
                 chunks_succeeded=0, chunks_failed=0, error=None, chunks=None):
        self.success = success
        self.output = output
        self.chunks_processed = chunks_processed
        self.chunks_succeeded = chunks_succeeded
        self.chunks_failed = chunks_failed
        self.error = error
        self.chunks = chunks or []

    @classmethod
    def failure(cls, error):
        return cls(False, output=None, error=str(error))

    def to_dict(self):
        result = {
            'success': self.success,
            'output': self.output,
            'chunks_processed': self.chunks_processed,
            'chunks_succeeded': self.chunks_succeeded,
            'chunks_failed': self.chunks_failed,
        }
        if self.error is not None:
            result['error'] = self.error
        return result

    def __repr__(self):
        return (f"ChunkedResult(success={self.success}, processed={self.chunks_processed}, "
                f"failed={self.chunks_failed})")


# ============================================================================
# ENGINE
# ============================================================================
class ChunkedProcessingEngine:
    """Converts large LaTeX documents chunk by chunk.

    ``is_processing`` is True while a run is between its start and the final
    cross-reference repair; it is always cleared when the run ends.
    """

    def __init__(self, config=None, progress=None, equations=None, cleaner=None):
        self.config = config or ChunkConfig()
        self.progress = progress or ProgressReporter()
        self.equations = equations or EquationCounterService()
        self.cleaner = cleaner or OutputCleaner()
        self.is_processing = False
        self.registry = None
        self._registered_fingerprint = None

    async def process_in_chunks(self, input_text, args_text, convert):
        """Convert ``input_text`` chunk by chunk with ``convert(args, latex)``.

        Returns:
            ChunkedResult
        """
        logger.info("Starting chunked processing for complex document...")
        if convert is None or not callable(convert):
            logger.error("Converter function not provided for chunked processing")
            return ChunkedResult.failure("Converter function not provided for chunked processing")
        if not isinstance(input_text, str):
            return ChunkedResult.failure(
                f"Input must be a string, got {type(input_text).__name__}")
        args_text = args_text or ''

        self.is_processing = True
        executor = ThreadPoolExecutor(thread_name_prefix='chunk-convert')
        try:
            latex = self._preprocess(input_text)
            self._prepare_equations(latex)
            self.progress.set_loading("Analysing document structure...", 10)

            self.registry = ExtractionRegistry.from_source(latex)
            logger.info("Preserved %d original LaTeX expressions for chunked processing",
                        len(self.registry))

            chunks = split_document(latex, self.config)
            assign_expression_ranges(chunks, self.registry)
            logger.info("Document split into %d chunks for processing", len(chunks))

            processed = await self._process_all(chunks, args_text, convert, executor)

            self.progress.set_loading("Combining processed sections...", 20)
            output = combine_chunks(processed, args_text, latex,
                                    state=self, cleaner=self.cleaner,
                                    registry=self.registry)
            validate_chunk_combination(output, processed)
            output = self._restore_wrappers(output)

            failed = sum(1 for chunk in processed if chunk.has_error)
            logger.info("Chunked processing complete: %d chunks, %d failed",
                        len(processed), failed)
            return ChunkedResult(
                True,
                output=output,
                chunks_processed=len(processed),
                chunks_succeeded=len(processed) - failed,
                chunks_failed=failed,
                chunks=processed,
            )
        finally:
            # Threads abandoned by a chunk timeout are not waited for.
            executor.shutdown(wait=False)
            self.is_processing = False

    def process_in_chunks_sync(self, input_text, args_text, convert):
        """Blocking form of process_in_chunks() for callers without an event loop."""
        return asyncio.run(self.process_in_chunks(input_text, args_text, convert))

    # ========================================================================
    # PIPELINE STEPS
    # ========================================================================
    def _preprocess(self, input_text):
        if crossref.has_anchor_markers(input_text):
            logger.info("Input already preprocessed (contains anchor markers); skipping")
            return input_text

        result = crossref.preprocess_latex(input_text)
        if not result['success']:
            logger.warning("Cross-reference preprocessing failed, continuing with original LaTeX: %s",
                           result.get('error'))
            return input_text

        stats = result['statistics']
        hypertargets, markdown_anchors = crossref.count_anchor_markers(result['latex'])
        logger.info("Preprocessing complete: %d anchors injected (%d labels, %d references)",
                    stats['anchors_injected'], stats['labels_found'], stats['references_found'])
        logger.debug("Anchor markers: %d hypertargets, %d markdown anchors",
                     hypertargets, markdown_anchors)
        return result['latex']

    def _prepare_equations(self, latex):
        try:
            self.equations.reset_equation_counter()
        except Exception as e:
            logger.warning("Failed to reset equation counter: %s", e)

        fingerprint = latex[:FINGERPRINT_LENGTH]
        if fingerprint == self._registered_fingerprint:
            logger.info("Skipping duplicate environment registration (already registered)")
            return
        try:
            count = self.equations.register_source_environments(latex)
        except Exception as e:
            logger.warning("Failed to register environments: %s", e)
            return
        self._registered_fingerprint = fingerprint
        logger.info("Registered %s environments before chunked processing", count)

    async def _process_all(self, chunks, args_text, convert, executor=None):
        processed = []
        total = len(chunks)
        for i, chunk in enumerate(chunks):
            number = i + 1
            self.progress.set_loading(f"Processing section {number} of {total}...",
                                      (number * 10) // total + 10)
            try:
                result = await process_chunk(
                    chunk, args_text, convert, number,
                    timeout=float(self.config.chunk_timeout), cleaner=self.cleaner,
                    executor=executor)
                processed.append(result)
                await asyncio.sleep(float(self.config.processing_delay))
            except Exception as e:
                logger.warning("Error processing chunk %d (%s): %s", number, chunk.title, e)
                processed.append(create_error_chunk(chunk, e, number))
        return processed

    def _restore_wrappers(self, html):
        try:
            return self.equations.restore_environment_wrappers_in_html(html)
        except Exception as e:
            logger.warning("Failed to restore environment wrappers: %s", e)
            return html


def process_document(input_text, args_text='', convert=None, config=None, **kwargs):
    """Blocking wrapper around ChunkedProcessingEngine.process_in_chunks()."""
    engine = ChunkedProcessingEngine(config=config, **kwargs)
    return engine.process_in_chunks_sync(input_text, args_text, convert)
