"""
config.py - Chunked processing configuration

Holds the tunables of a chunked conversion run. Values come from defaults,
an optional JSON file, and CLI overrides (in that order).
"""

import json
import logging

logger = logging.getLogger(__name__)

# ============================================================================
# DEFAULT CONFIGURATION
# ============================================================================
DEFAULT_MAX_CHUNK_SIZE = 3000       # characters per size-based chunk
DEFAULT_CHUNK_TIMEOUT = 5.0         # seconds per chunk conversion
DEFAULT_PROCESSING_DELAY = 0.05     # seconds between chunks
DEFAULT_PARAGRAPH_WINDOW = 200      # +/- characters searched for a \n\n break
DEFAULT_TITLE_MAX_LENGTH = 50

DEFAULT_PREAMBLE = (
    "\\documentclass{article}\n"
    "\\usepackage{amsmath,amssymb,amsthm}\n"
)


class ChunkConfig:
    """Holds all configuration for a chunked conversion run."""

    _KEYS = (
        'max_chunk_size',
        'chunk_timeout',
        'processing_delay',
        'paragraph_window',
        'title_max_length',
    )

    def __init__(self, max_chunk_size=DEFAULT_MAX_CHUNK_SIZE,
                 chunk_timeout=DEFAULT_CHUNK_TIMEOUT,
                 processing_delay=DEFAULT_PROCESSING_DELAY,
                 paragraph_window=DEFAULT_PARAGRAPH_WINDOW,
                 title_max_length=DEFAULT_TITLE_MAX_LENGTH):
        self.max_chunk_size = max_chunk_size
        self.chunk_timeout = chunk_timeout
        self.processing_delay = processing_delay
        self.paragraph_window = paragraph_window
        self.title_max_length = title_max_length
        self.validate()

    def validate(self):
        """Raise ValueError for values that would stall or break splitting."""
        if int(self.max_chunk_size) <= 0:
            raise ValueError(
                f"max_chunk_size must be positive, got {self.max_chunk_size}")
        if int(self.paragraph_window) < 0:
            raise ValueError(
                f"paragraph_window must be >= 0, got {self.paragraph_window}")
        if float(self.chunk_timeout) <= 0:
            raise ValueError(
                f"chunk_timeout must be positive, got {self.chunk_timeout}")
        if float(self.processing_delay) < 0:
            raise ValueError(
                f"processing_delay must be >= 0, got {self.processing_delay}")

    @classmethod
    def from_dict(cls, data):
        """Build a config from a dict, skipping _comment and unknown keys."""
        kwargs = {}
        for key, value in data.items():
            if key.startswith('_'):
                continue  # skip _comment keys
            if key not in cls._KEYS:
                logger.warning("Ignoring unknown config key: %s", key)
                continue
            kwargs[key] = value
        return cls(**kwargs)

    @classmethod
    def from_json(cls, filepath):
        """Load configuration from a JSON file."""
        with open(filepath, 'r', encoding='utf-8') as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Config file must contain a JSON object: {filepath}")
        return cls.from_dict(data)

    def to_dict(self):
        return {key: getattr(self, key) for key in self._KEYS}

    def __repr__(self):
        fields = ', '.join(f"{k}={getattr(self, k)!r}" for k in self._KEYS)
        return f"ChunkConfig({fields})"
