"""Tests for converter module."""
import os
import subprocess
import sys

import pytest

# Support running tests both with pytest (installed package) and standalone
try:
    from tex2html_chunked import converter
except ImportError:
    sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))
    from tex2html_chunked import converter

from tex2html_chunked.converter import PandocConverter


@pytest.fixture
def fake_pandoc_path(monkeypatch):
    monkeypatch.setattr(converter.shutil, 'which', lambda name: '/usr/bin/pandoc')


class TestBuildCommand:
    def test_default_formats(self, fake_pandoc_path):
        cmd = PandocConverter().build_command('--mathjax')
        assert cmd == ['/usr/bin/pandoc', '--mathjax', '-f', 'latex', '-t', 'html']

    def test_formats_from_args(self, fake_pandoc_path):
        cmd = PandocConverter().build_command('--from=latex+raw_tex -t html5')
        assert cmd == ['/usr/bin/pandoc', '--from=latex+raw_tex', '-t', 'html5']

    def test_quoted_args(self, fake_pandoc_path):
        cmd = PandocConverter().build_command('--metadata "title=A B"')
        assert 'title=A B' in cmd

    def test_missing_executable(self, monkeypatch):
        monkeypatch.setattr(converter.shutil, 'which', lambda name: None)
        with pytest.raises(FileNotFoundError):
            PandocConverter('no-such-pandoc').build_command('')


class TestCall:
    def test_returns_stdout(self, fake_pandoc_path, monkeypatch):
        calls = []

        def fake_run(cmd, **kwargs):
            calls.append((cmd, kwargs))
            return subprocess.CompletedProcess(cmd, 0, '<p>x</p>\n', '')

        monkeypatch.setattr(converter.subprocess, 'run', fake_run)
        assert PandocConverter()('', 'x') == '<p>x</p>\n'
        assert calls[0][1]['input'] == 'x'

    def test_nonzero_exit(self, fake_pandoc_path, monkeypatch):
        monkeypatch.setattr(
            converter.subprocess, 'run',
            lambda cmd, **kwargs: subprocess.CompletedProcess(cmd, 64, '', 'Error parsing at line 3'))
        with pytest.raises(RuntimeError, match='Error parsing at line 3'):
            PandocConverter()('', 'x')

    def test_timeout(self, fake_pandoc_path, monkeypatch):
        def fake_run(cmd, **kwargs):
            raise subprocess.TimeoutExpired(cmd, kwargs['timeout'])

        monkeypatch.setattr(converter.subprocess, 'run', fake_run)
        with pytest.raises(TimeoutError, match='timeout'):
            PandocConverter(timeout=1)('', 'x')


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
