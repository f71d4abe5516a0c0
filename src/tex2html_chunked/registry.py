"""
registry.py - Per-run expression and label registry

One ExtractionRegistry is built at the start of each chunked conversion and
passed explicitly through splitter, processor and combiner. It is written
once (before any chunk is converted) and only read afterwards.
"""

import bisect
import logging

from . import crossref
from . import expressions as expr_mod

logger = logging.getLogger(__name__)


class ExtractionRegistry:
    """Expressions by index and by position, plus cross-reference labels."""

    def __init__(self):
        self.expressions_by_index = {}      # index -> MathExpression
        self.expressions_by_position = []   # raw LaTeX, position order
        self.labels = {}                    # label -> {"name", "position", "type"}
        self.references = {}                # label -> ["ref", "eqref", ...]
        self._positions = []                # sorted positions, for range lookups

    @classmethod
    def from_source(cls, latex):
        """Extract expressions and labels from ``latex`` into a new registry."""
        registry = cls()
        expression_map = expr_mod.extract_expressions(latex)
        registry.store(expression_map, expr_mod.order_by_position(expression_map))
        registry.labels = crossref.extract_labels(latex)
        registry.references = {
            name: [r['type'] for r in refs]
            for name, refs in crossref.extract_references(latex).items()
        }
        return registry

    def store(self, expression_map, ordered_expressions):
        self.expressions_by_index = dict(expression_map)
        self.expressions_by_position = expr_mod.position_array(ordered_expressions)
        self._positions = [e.position for e in ordered_expressions]
        logger.debug("Stored %d expressions in registry", len(self._positions))

    def get_latex_by_index(self, index):
        expr = self.expressions_by_index.get(index)
        return expr.latex if expr is not None else None

    def get_latex_by_position(self, position):
        """LaTeX of the ``position``-th expression in source order."""
        if 0 <= position < len(self.expressions_by_position):
            return self.expressions_by_position[position]
        return None

    def count_before(self, offset):
        """Number of expressions that start before ``offset``."""
        return bisect.bisect_left(self._positions, offset)

    def expressions_in_range(self, start, end):
        """Raw LaTeX of the expressions with position-order index in [start, end)."""
        return self.expressions_by_position[start:end]

    def status(self):
        return {
            'expressions': len(self.expressions_by_index),
            'positions': len(self.expressions_by_position),
            'labels': len(self.labels),
            'references': sum(len(v) for v in self.references.values()),
        }

    def clear(self):
        self.expressions_by_index = {}
        self.expressions_by_position = []
        self.labels = {}
        self.references = {}
        self._positions = []

    def __len__(self):
        return len(self.expressions_by_index)
