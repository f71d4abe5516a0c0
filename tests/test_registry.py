"""Tests for registry module."""
import os
import sys

# Support running tests both with pytest (installed package) and standalone
try:
    from tex2html_chunked.registry import ExtractionRegistry
except ImportError:
    sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))
    from tex2html_chunked.registry import ExtractionRegistry


SOURCE = r"A $x$ B \begin{equation}y\label{eq1}\end{equation} see \ref{eq1} and \eqref{eq1}"


class TestExtractionRegistry:
    def test_from_source(self):
        registry = ExtractionRegistry.from_source(SOURCE)
        assert len(registry) == 2
        assert registry.expressions_by_position[0] == 'x'
        assert registry.expressions_by_position[1] == r'y\label{eq1}'
        assert 'eq1' in registry.labels
        assert registry.references['eq1'] == ['ref', 'eqref']

    def test_lookup_by_index_and_position(self):
        registry = ExtractionRegistry.from_source(SOURCE)
        # the environment pass runs before the inline pass
        assert registry.get_latex_by_index(0) == r'y\label{eq1}'
        assert registry.get_latex_by_position(0) == 'x'
        assert registry.get_latex_by_position(5) is None
        assert registry.get_latex_by_index(9) is None

    def test_count_before(self):
        registry = ExtractionRegistry.from_source(SOURCE)
        assert registry.count_before(0) == 0
        assert registry.count_before(SOURCE.index('B')) == 1
        assert registry.count_before(len(SOURCE)) == 2

    def test_expressions_in_range(self):
        registry = ExtractionRegistry.from_source(SOURCE)
        assert registry.expressions_in_range(1, 2) == [r'y\label{eq1}']

    def test_status_and_clear(self):
        registry = ExtractionRegistry.from_source(SOURCE)
        status = registry.status()
        assert status['expressions'] == 2
        assert status['labels'] == 1
        assert status['references'] == 2
        registry.clear()
        assert len(registry) == 0
        assert registry.count_before(100) == 0

    def test_fresh_registry_per_source(self):
        first = ExtractionRegistry.from_source("$a$")
        second = ExtractionRegistry.from_source("$b$ $c$")
        assert len(first) == 1
        assert len(second) == 2


if __name__ == '__main__':
    import pytest
    pytest.main([__file__, '-v'])
