#!/usr/bin/env python3
"""
cli.py - Chunked LaTeX to HTML converter

Converts a large LaTeX document to HTML by running Pandoc on one chunk at a
time and stitching the results back together:

  chunk2html paper.tex -o paper.html

A chunk that fails or times out is replaced by an inline error message; the
rest of the document is still produced.

Exit codes:
  0  all chunks converted
  1  nothing produced (bad input, missing pandoc, bad config)
  2  output written, but some chunks failed
"""

import argparse
import logging
import os
import sys

from .config import ChunkConfig
from .converter import PandocConverter
from .engine import ChunkedProcessingEngine
from .registry import ExtractionRegistry
from .splitter import assign_expression_ranges, split_document


# ============================================================================
# CONFIGURATION
# ============================================================================
def build_config(args):
    """ChunkConfig from --config JSON plus CLI overrides."""
    values = ChunkConfig().to_dict()
    if args.config:
        if os.path.isfile(args.config):
            values.update(ChunkConfig.from_json(args.config).to_dict())
            print(f"  Loaded config: {args.config}", file=sys.stderr)
        else:
            print(f"  WARNING: Config file not found: {args.config}",
                  file=sys.stderr)

    if args.timeout is not None:
        values['chunk_timeout'] = args.timeout
    if args.max_chunk_size is not None:
        values['max_chunk_size'] = args.max_chunk_size
    return ChunkConfig.from_dict(values)


def setup_logging(verbose=False):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format='%(levelname)s %(name)s: %(message)s',
        stream=sys.stderr)


# ============================================================================
# DRY RUN
# ============================================================================
def print_chunk_plan(latex, config):
    """Print how the document would be split, without converting."""
    registry = ExtractionRegistry.from_source(latex)
    chunks = assign_expression_ranges(split_document(latex, config), registry)
    status = registry.status()
    print(f"Chunks: {len(chunks)}  Expressions: {status['expressions']}  "
          f"Labels: {status['labels']}  References: {status['references']}")
    for i, chunk in enumerate(chunks, 1):
        print(f"  {i:3d}. [{chunk.type:12s}] {chunk.title:50s} "
              f"{len(chunk.raw_content):6d} chars  "
              f"expr {chunk.start_expression_index}-{chunk.end_expression_index}")
    return chunks


# ============================================================================
# MAIN
# ============================================================================
def run(args):
    """Main execution flow. Returns the process exit code."""
    input_path = os.path.abspath(args.input_tex)
    output_path = os.path.abspath(args.output)

    print(f"{'=' * 60}", file=sys.stderr)
    print("chunk2html: Chunked LaTeX → HTML Converter", file=sys.stderr)
    print(f"{'=' * 60}", file=sys.stderr)

    print("\n[1/3] Reading input and configuration...", file=sys.stderr)
    with open(input_path, 'r', encoding='utf-8') as f:
        latex = f.read()
    config = build_config(args)
    print(f"  Input: {input_path} ({len(latex)} chars)", file=sys.stderr)
    print(f"  {config!r}", file=sys.stderr)

    converter = PandocConverter(args.pandoc, timeout=config.chunk_timeout)
    try:
        converter.resolve_executable()
    except FileNotFoundError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    print("\n[2/3] Converting chunks...", file=sys.stderr)
    engine = ChunkedProcessingEngine(config)
    result = engine.process_in_chunks_sync(latex, args.args, converter)
    if not result.success:
        print(f"ERROR: {result.error}", file=sys.stderr)
        return 1
    for i, chunk in enumerate(result.chunks, 1):
        status = 'FAILED' if chunk.has_error else 'ok'
        print(f"  Chunk {i:3d}: [{status:6s}] {chunk.title}", file=sys.stderr)

    print("\n[3/3] Writing output...", file=sys.stderr)
    output_dir = os.path.dirname(output_path)
    if output_dir and not os.path.isdir(output_dir):
        os.makedirs(output_dir, exist_ok=True)
    with open(output_path, 'w', encoding='utf-8') as f:
        f.write(result.output)

    print(f"\n{'=' * 60}", file=sys.stderr)
    print("DONE", file=sys.stderr)
    print(f"{'=' * 60}", file=sys.stderr)
    print(f"  Output:    {output_path}", file=sys.stderr)
    print(f"  Chunks:    {result.chunks_processed}", file=sys.stderr)
    print(f"  Succeeded: {result.chunks_succeeded}", file=sys.stderr)
    print(f"  Failed:    {result.chunks_failed}", file=sys.stderr)
    print(f"{'=' * 60}", file=sys.stderr)

    if result.chunks_failed:
        print("\nCompleted with failed chunks. Please review.", file=sys.stderr)
        return 2
    return 0


def main(argv=None):
    parser = argparse.ArgumentParser(
        description='Chunked LaTeX → HTML Converter (Pandoc)',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Convert with default settings
  %(prog)s paper.tex -o paper.html

  # Pass options through to pandoc; sections are numbered across chunks
  %(prog)s paper.tex -o paper.html --args "--number-sections --mathjax"

  # Longer per-chunk timeout, smaller chunks
  %(prog)s paper.tex -o paper.html --timeout 20 --max-chunk-size 2000

  # Show how the document would be split
  %(prog)s paper.tex --dry-run
""")

    parser.add_argument(
        'input_tex',
        help='Path to the LaTeX file to convert')
    parser.add_argument(
        '-o', '--output',
        help='Output HTML file path (required unless --dry-run)')
    parser.add_argument(
        '--args', default='',
        help='Arguments passed to pandoc, e.g. "--number-sections --mathjax"')
    parser.add_argument(
        '--config', '-f',
        help='Optional config JSON (max_chunk_size, chunk_timeout, ...)')
    parser.add_argument(
        '--timeout', type=float, default=None,
        help='Per-chunk conversion timeout in seconds (default: 5)')
    parser.add_argument(
        '--max-chunk-size', type=int, default=None,
        help='Maximum characters per size-based chunk (default: 3000)')
    parser.add_argument(
        '--pandoc', default='pandoc',
        help='Pandoc executable name or path')
    parser.add_argument(
        '--dry-run', action='store_true',
        help='Show the chunk plan without converting')
    parser.add_argument(
        '--verbose', '-v', action='store_true',
        help='Enable debug logging')

    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    # Validate
    if not os.path.isfile(args.input_tex):
        print(f"ERROR: File not found: {args.input_tex}", file=sys.stderr)
        sys.exit(1)

    try:
        if args.dry_run:
            with open(args.input_tex, 'r', encoding='utf-8') as f:
                latex = f.read()
            print_chunk_plan(latex, build_config(args))
            return

        if not args.output:
            print("ERROR: --output is required (unless using --dry-run).",
                  file=sys.stderr)
            sys.exit(1)

        code = run(args)
    except ValueError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)
    if code:
        sys.exit(code)


if __name__ == '__main__':
    main()
