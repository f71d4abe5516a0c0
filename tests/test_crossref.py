"""Tests for crossref module."""
import os
import sys

# Support running tests both with pytest (installed package) and standalone
try:
    from tex2html_chunked import crossref
except ImportError:
    sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))
    from tex2html_chunked import crossref


class TestExtraction:
    def test_extract_labels(self):
        labels = crossref.extract_labels(r"\section{Intro}\label{sec:intro} text \label{other}")
        assert set(labels) == {'sec:intro', 'other'}
        assert labels['sec:intro']['type'] == 'section'

    def test_duplicate_label_keeps_first(self):
        labels = crossref.extract_labels(r"\label{a} x \label{a}")
        assert labels['a']['position'] == 0

    def test_detect_label_type(self):
        latex = r"\begin{theorem} Statement \label{thm}"
        assert crossref.detect_label_type(latex, latex.index(r'\label')) == 'theorem'
        latex = r"\begin{figure} \label{fig}"
        assert crossref.detect_label_type(latex, latex.index(r'\label')) == 'figure'
        assert crossref.detect_label_type(r"\label{x}", 0) == 'generic'

    def test_extract_references(self):
        refs = crossref.extract_references(r"see \eqref{e} and \ref{e}, page \pageref{p}")
        assert [r['type'] for r in refs['e']] == ['eqref', 'ref']
        assert refs['p'][0]['type'] == 'pageref'


class TestInjectAnchors:
    def test_label_outside_math(self):
        latex, injected, skipped = crossref.inject_anchors(
            r"\section{Intro}\label{sec:intro} text")
        assert r"\label{sec:intro}\hypertarget{sec:intro}{}" in latex
        assert injected == 1
        assert skipped == 0

    def test_label_inside_math_skipped(self):
        src = r"\begin{equation} x \label{eq1} \end{equation}"
        latex, injected, skipped = crossref.inject_anchors(src)
        assert latex == src
        assert injected == 0
        assert skipped == 1

    def test_label_after_math(self):
        src = r"\begin{align} a \label{eq1} \end{align} \section{B}\label{b}"
        latex, injected, skipped = crossref.inject_anchors(src)
        assert r"\label{b}\hypertarget{b}{}" in latex
        assert (injected, skipped) == (1, 1)

    def test_injection_is_idempotent(self):
        once, _, _ = crossref.inject_anchors(r"\label{a} text")
        twice, injected, _ = crossref.inject_anchors(once)
        assert twice == once
        assert injected == 0


class TestEquationNumbers:
    def test_numbering_rows(self):
        latex = (r"\begin{equation}a\label{e1}\end{equation} "
                 r"\begin{align} b \label{e2} \\ c \nonumber \\ d \label{e3} \end{align} "
                 r"\begin{equation*} z \end{equation*}")
        numbers = crossref.calculate_equation_numbers(latex)
        assert numbers == {'e1': '1', 'e2': '2', 'e3': '3'}

    def test_tag_overrides_number(self):
        latex = r"\begin{equation}a\tag{*}\label{t}\end{equation}"
        assert crossref.calculate_equation_numbers(latex) == {'t': '*'}

    def test_commented_equation_ignored(self):
        latex = "% \\begin{equation}a\\label{x}\\end{equation}\n\\begin{equation}b\\label{y}\\end{equation}"
        assert crossref.calculate_equation_numbers(latex) == {'y': '1'}


class TestPreprocess:
    def test_statistics(self):
        result = crossref.preprocess_latex(r"\label{a} \ref{a} \ref{missing}")
        assert result['success'] is True
        stats = result['statistics']
        assert stats['labels_found'] == 1
        assert stats['anchors_injected'] == 1
        assert stats['references_found'] == 2
        assert stats['orphaned_references'] == ['missing']
        assert r"\hypertarget{a}{}" in result['latex']

    def test_bad_input(self):
        result = crossref.preprocess_latex(None)
        assert result['success'] is False
        assert result['latex'] is None

    def test_anchor_markers(self):
        assert crossref.has_anchor_markers(r"x \hypertarget{a}{}")
        assert crossref.has_anchor_markers("x []{#content-a}")
        assert not crossref.has_anchor_markers(r"\label{a}")
        assert crossref.count_anchor_markers(r"\hypertarget{a}{} []{#content-b}") == (1, 1)


if __name__ == '__main__':
    import pytest
    pytest.main([__file__, '-v'])
