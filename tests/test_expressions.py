"""Tests for expressions module."""
import os
import sys

# Support running tests both with pytest (installed package) and standalone
try:
    from tex2html_chunked import expressions
except ImportError:
    sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))
    from tex2html_chunked import expressions

from tex2html_chunked.expressions import MathExpression


class TestExtractExpressions:
    def test_inline_and_display(self):
        found = expressions.extract_expressions("Let $x=1$ and $$y=2$$")
        assert len(found) == 2
        # display math is found first
        assert found[0].latex == 'y=2'
        assert found[0].type == 'display'
        assert found[0].pattern == '$$'
        assert found[0].position == 14
        assert found[1].latex == 'x=1'
        assert found[1].type == 'inline'
        assert found[1].position == 4

    def test_bracket_display(self):
        found = expressions.extract_expressions(r"A \[ a^2 \] B")
        assert len(found) == 1
        assert found[0].latex == 'a^2'
        assert found[0].pattern == '\\[\\]'

    def test_line_break_not_display_math(self):
        found = expressions.extract_expressions(r"a \\[6pt] b \[ z \]")
        assert [e.latex for e in found.values()] == ['z']

    def test_environment_pattern_drops_star(self):
        found = expressions.extract_expressions(r"\begin{align*} a &= b \end{align*}")
        assert len(found) == 1
        assert found[0].type == 'environment'
        assert found[0].pattern == 'align'
        assert found[0].latex == 'a &= b'

    def test_dollars_inside_environment_not_rematched(self):
        src = r"\begin{equation} \text{$a$} \end{equation}"
        found = expressions.extract_expressions(src)
        assert len(found) == 1
        assert found[0].type == 'environment'

    def test_paren_inline(self):
        found = expressions.extract_expressions(r"so \(k+1\) holds")
        assert found[0].pattern == '\\(\\)'
        assert found[0].latex == 'k+1'

    def test_currency_skipped(self):
        found = expressions.extract_expressions("total $12.50$ due")
        assert found == {}

    def test_escaped_dollar_ignored(self):
        found = expressions.extract_expressions(r"costs \$5 today")
        assert found == {}

    def test_non_string(self):
        assert expressions.extract_expressions(None) == {}


class TestOrdering:
    def test_order_by_position(self):
        found = expressions.extract_expressions("Let $x=1$ and $$y=2$$")
        ordered = expressions.order_by_position(found)
        assert [e.latex for e in ordered] == ['x=1', 'y=2']
        assert expressions.position_array(ordered) == ['x=1', 'y=2']

    def test_order_bad_input(self):
        assert expressions.order_by_position([object()]) == []


class TestFilters:
    def test_filter_by_type(self):
        found = expressions.extract_expressions("Let $x=1$ and $$y=2$$")
        inline = expressions.filter_by_type(found, 'inline')
        assert list(inline) == [1]

    def test_filter_by_pattern(self):
        found = expressions.extract_expressions("Let $x=1$ and $$y=2$$")
        assert list(expressions.filter_by_pattern(found, '$$')) == [0]

    def test_filters_tolerate_bad_input(self):
        assert expressions.filter_by_type(None, 'inline') == {}
        assert expressions.filter_by_pattern('nope', '$') == {}

    def test_clean_expression(self):
        assert expressions.clean_expression("  a \n   b ") == 'a b'
        assert expressions.clean_expression(None) == ''


class TestValidation:
    def test_consistent_expression(self):
        expr = MathExpression('x', 'display', '$$', 0, 0)
        assert expressions.validate_expression(expr) is True

    def test_inconsistent_expression(self):
        expr = MathExpression('x', 'inline', '$$', 0, 0)
        assert expressions.validate_expression(expr) is False

    def test_missing_fields(self):
        assert expressions.validate_expression(object()) is False

    def test_syntax_unmatched_dollar(self):
        result = expressions.validate_latex_syntax("value $x")
        assert result['valid'] is False
        assert any('dollar' in issue for issue in result['issues'])

    def test_syntax_balanced(self):
        result = expressions.validate_latex_syntax(r"\textbf{a} $x$ \(y\)")
        assert result['valid'] is True
        assert result['statistics']['length'] > 0

    def test_syntax_empty(self):
        result = expressions.validate_latex_syntax('')
        assert result['valid'] is False

    def test_syntax_warns_on_usepackage(self):
        result = expressions.validate_latex_syntax(r"\usepackage{amsmath} text")
        assert result['warnings']


if __name__ == '__main__':
    import pytest
    pytest.main([__file__, '-v'])
