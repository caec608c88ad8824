"""Tests for retrying file helpers and the ignore list."""

import pytest
import builtins
import os
import stat
import time
from pathlib import Path
from unittest.mock import patch

import sys
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from inksite_pkg.fileio import IgnoreList, copy_file, read_lines, read_text, write_text_if_changed


class TestReadText:
    """Test cases for read_text."""

    def test_reads_utf8(self, temp_dir):
        path = Path(temp_dir) / 'page.html'
        path.write_text('héllo', encoding='utf-8')
        assert read_text(str(path)) == 'héllo'

    def test_missing_file_returns_empty(self, temp_dir):
        assert read_text(os.path.join(temp_dir, 'missing.html')) == ''

    def test_retries_then_gives_up(self, temp_dir):
        """Every failed attempt is retried; exhaustion returns empty text."""
        path = Path(temp_dir) / 'locked.html'
        path.write_text('x')

        with patch('builtins.open', side_effect=PermissionError('locked')) as mock_open:
            assert read_text(str(path), attempts=3, delay=0) == ''

        assert mock_open.call_count == 3

    def test_read_lines(self, temp_dir):
        path = Path(temp_dir) / 'lines.txt'
        path.write_text('a\nb\n')
        assert read_lines(str(path)) == ['a', 'b']

    def test_invalid_utf8_is_replaced(self, temp_dir):
        """A Latin-1 file reads with replacement characters instead of raising."""
        path = Path(temp_dir) / 'legacy.txt'
        path.write_bytes(b'caf\xe9 au lait')
        assert read_text(str(path)) == 'caf\ufffd au lait'


class TestWriteTextIfChanged:
    """Test cases for write_text_if_changed."""

    def test_writes_new_file_and_directories(self, temp_dir):
        path = os.path.join(temp_dir, 'out', 'nested', 'index.html')
        assert write_text_if_changed(path, '<p>x</p>\n') is True
        assert Path(path).read_text() == '<p>x</p>\n'

    def test_skips_identical_content(self, temp_dir):
        path = os.path.join(temp_dir, 'index.html')
        write_text_if_changed(path, 'same')
        mtime = os.path.getmtime(path)

        assert write_text_if_changed(path, 'same') is False
        assert os.path.getmtime(path) == mtime

    def test_rewrites_changed_content(self, temp_dir):
        path = os.path.join(temp_dir, 'index.html')
        write_text_if_changed(path, 'old')
        assert write_text_if_changed(path, 'new') is True
        assert Path(path).read_text() == 'new'

    def test_newlines_are_preserved(self, temp_dir):
        path = os.path.join(temp_dir, 'index.html')
        write_text_if_changed(path, 'a\r\nb\n')
        assert write_text_if_changed(path, 'a\r\nb\n') is False
        assert Path(path).read_bytes() == b'a\r\nb\n'

    @pytest.mark.skipif(hasattr(os, 'geteuid') and os.geteuid() == 0,
                        reason='root ignores read-only permissions')
    def test_clears_read_only(self, temp_dir):
        path = os.path.join(temp_dir, 'index.html')
        write_text_if_changed(path, 'old')
        os.chmod(path, stat.S_IREAD)

        assert write_text_if_changed(path, 'new') is True
        assert Path(path).read_text() == 'new'

    def test_write_retried_after_transient_failure(self, temp_dir):
        path = os.path.join(temp_dir, 'index.html')
        real_open = builtins.open
        failures = []

        def flaky_open(file, mode='r', *args, **kwargs):
            if 'w' in mode and not failures:
                failures.append(file)
                raise PermissionError('in use')
            return real_open(file, mode, *args, **kwargs)

        with patch('builtins.open', side_effect=flaky_open):
            assert write_text_if_changed(path, 'x', delay=0) is True

        assert failures == [path]
        assert Path(path).read_text() == 'x'

    def test_write_failure_after_retries_is_skipped(self, temp_dir):
        path = os.path.join(temp_dir, 'index.html')

        with patch('builtins.open', side_effect=PermissionError('busy')) as mock_open:
            assert write_text_if_changed(path, 'x', attempts=2, delay=0) is False

        assert mock_open.call_count == 2
        assert not os.path.exists(path)


class TestIgnoreList:
    """Test cases for IgnoreList."""

    def test_patterns_match_anywhere(self):
        ignore = IgnoreList([r'\.psd$', r'/drafts/'])
        assert ignore.is_ignored('/site/assets/logo.psd')
        assert ignore.is_ignored('/site/assets/drafts/a.css')
        assert not ignore.is_ignored('/site/assets/site.css')

    def test_backslashes_are_normalized(self):
        assert IgnoreList([r'/drafts/']).is_ignored('C:\\site\\drafts\\a.css')

    def test_load_skips_blank_and_invalid(self, temp_dir):
        path = Path(temp_dir) / 'ignore.txt'
        path.write_text('\\.tmp$\n\n[unclosed\nThumbs\\.db\n')

        ignore = IgnoreList().load(str(path))

        assert len(ignore.patterns) == 2
        assert ignore.is_ignored('a/Thumbs.db')

    def test_load_missing_file(self, temp_dir):
        assert IgnoreList().load(os.path.join(temp_dir, 'none.txt')).patterns == []


class TestCopyFile:
    """Test cases for copy_file."""

    def test_copies_missing_destination(self, temp_dir):
        source = Path(temp_dir) / 'src.css'
        source.write_text('body{}')
        destination = os.path.join(temp_dir, 'out', 'assets', 'src.css')

        assert copy_file(str(source), destination) is True
        assert Path(destination).read_text() == 'body{}'

    def test_skips_up_to_date_destination(self, temp_dir):
        source = Path(temp_dir) / 'src.css'
        source.write_text('body{}')
        destination = os.path.join(temp_dir, 'dst.css')
        copy_file(str(source), destination)

        assert copy_file(str(source), destination) is False

    def test_recopies_newer_source(self, temp_dir):
        source = Path(temp_dir) / 'src.css'
        source.write_text('old')
        destination = os.path.join(temp_dir, 'dst.css')
        copy_file(str(source), destination)

        source.write_text('new')
        future = time.time() + 10
        os.utime(str(source), (future, future))

        assert copy_file(str(source), destination) is True
        assert Path(destination).read_text() == 'new'

    def test_ignored_source(self, temp_dir):
        source = Path(temp_dir) / 'art.psd'
        source.write_text('x')
        destination = os.path.join(temp_dir, 'out', 'art.psd')

        assert copy_file(str(source), destination, IgnoreList([r'\.psd$'])) is False
        assert not os.path.exists(destination)

    def test_failure_after_retries_is_skipped(self, temp_dir):
        source = Path(temp_dir) / 'src.css'
        source.write_text('x')
        destination = os.path.join(temp_dir, 'dst.css')

        with patch('inksite_pkg.fileio.shutil.copy2', side_effect=PermissionError('busy')) as mock_copy:
            assert copy_file(str(source), destination, attempts=2, delay=0) is False

        assert mock_copy.call_count == 2
