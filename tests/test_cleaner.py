"""Tests for cleaner module."""
import os
import sys

from bs4 import BeautifulSoup

# Support running tests both with pytest (installed package) and standalone
try:
    from tex2html_chunked.cleaner import OutputCleaner
except ImportError:
    sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))
    from tex2html_chunked.cleaner import OutputCleaner


class TestStructureCleaning:
    def test_body_extracted(self):
        html = "<html><head><title>t</title></head><body class='x'>\n<p>x</p>\n</body></html>"
        assert OutputCleaner().clean_pandoc_output(html) == "<p>x</p>"

    def test_head_elements_removed_from_fragment(self):
        html = "<meta charset='utf-8'><style>p { color: red }</style><p>x</p>"
        assert OutputCleaner().clean_pandoc_output(html) == "<p>x</p>"

    def test_duplicate_title_blocks(self):
        block = '<header id="title-block-header"><h1 class="title">T</h1></header>'
        html = block + "<p>a</p>" + block + "<p>b</p>"
        result = OutputCleaner().clean_pandoc_output(html)
        assert result.count('title-block-header') == 1
        assert result == block + "<p>a</p><p>b</p>"

    def test_invalid_input(self):
        assert OutputCleaner().clean_pandoc_output(None) == ''
        assert OutputCleaner().clean_pandoc_output('') == ''

    def test_whitespace_trimmed(self):
        assert OutputCleaner().clean_pandoc_output("  <p>x</p>\n\n") == "<p>x</p>"


class TestCrossReferences:
    LATEX = (r"\section{Intro}\label{sec:intro} "
             r"\begin{equation} x \label{eq1} \end{equation} "
             r"see \eqref{eq1} and \ref{sec:intro}")

    def test_equation_number_filled_in(self):
        html = ('<p>see <a href="#eq1" data-reference-type="eqref" '
                'data-reference="eq1">[eq1]</a></p>')
        result = OutputCleaner().clean_pandoc_output(html, self.LATEX)
        link = BeautifulSoup(result, 'html.parser').a
        assert link.get_text() == '(1)'
        # no content- anchor for an equation label; href stays
        assert link['href'] == '#eq1'

    def test_link_pointed_at_anchor(self):
        html = ('<h1 id="intro"><span class="header-section-number">1</span> Intro</h1>'
                '<span id="content-sec:intro" class="cross-ref-anchor"></span>'
                '<p><a href="#sec:intro" data-reference-type="ref" '
                'data-reference="sec:intro">[sec:intro]</a></p>')
        result = OutputCleaner().clean_pandoc_output(html, self.LATEX)
        link = BeautifulSoup(result, 'html.parser').a
        assert link['href'] == '#content-sec:intro'
        assert link.get_text() == '1'

    def test_heading_with_label_id(self):
        html = ('<h2 id="sec:intro">2.3 Intro</h2>'
                '<p><a href="#sec:intro" data-reference="sec:intro">[sec:intro]</a></p>')
        result = OutputCleaner().clean_pandoc_output(html, self.LATEX)
        assert BeautifulSoup(result, 'html.parser').a.get_text() == '2.3'

    def test_unknown_label_untouched(self):
        html = '<p><a href="#nope" data-reference="nope">[nope]</a></p>'
        assert OutputCleaner().clean_pandoc_output(html, self.LATEX) == html

    def test_deferred_while_chunking(self):
        html = '<p><a href="#eq1" data-reference="eq1">[eq1]</a></p>'
        result = OutputCleaner().clean_pandoc_output(html, self.LATEX, is_chunked_processing=True)
        assert result == html

    def test_no_links_returns_input(self):
        html = "<p>a<br>b</p>"
        assert OutputCleaner().clean_pandoc_output(html, self.LATEX) == html

    def test_idempotent(self):
        html = ('<span id="content-sec:intro"></span><h1>1 Intro</h1>'
                '<p><a href="#sec:intro" data-reference="sec:intro">[sec:intro]</a>'
                ' <a href="#eq1" data-reference-type="eqref" data-reference="eq1">[eq1]</a></p>')
        cleaner = OutputCleaner()
        once = cleaner.clean_pandoc_output(html, self.LATEX)
        assert cleaner.clean_pandoc_output(once, self.LATEX) == once


if __name__ == '__main__':
    import pytest
    pytest.main([__file__, '-v'])
