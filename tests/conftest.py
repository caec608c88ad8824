"""Test configuration and fixtures for InkSite tests."""

import pytest
import tempfile
import shutil
import os
from pathlib import Path
from datetime import datetime

import sys
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from inksite_pkg.composer import Composer
from inksite_pkg.variables import VariableStack


def write_file(root, relative_path, content):
    """Write *content* to ``root/relative_path``, creating directories."""
    path = Path(root) / relative_path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding='utf-8')
    return str(path)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    temp_dir = tempfile.mkdtemp()
    yield temp_dir
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def site_dir(temp_dir):
    """Create a site input directory with layout, include and page directories."""
    site = Path(temp_dir) / 'site'
    for directory in ('layout', 'include', 'pages', 'markdown'):
        (site / directory).mkdir(parents=True)
    return str(site)


@pytest.fixture
def fixed_clock():
    """Clock returning a fixed point in time."""
    return lambda: datetime(2024, 3, 5, 14, 7, 9)


@pytest.fixture
def composer(site_dir, fixed_clock):
    """Composer over the site directory with debug includes disabled."""
    return Composer(site_dir, clock=fixed_clock)


@pytest.fixture
def variables():
    return VariableStack()


@pytest.fixture
def compose_page(site_dir, composer, variables):
    """Write a root page under ``pages/`` and compose it."""
    def _compose(content, name='index.html', composer=composer):
        path = write_file(site_dir, os.path.join('pages', name), content)
        return composer.compose_root(path, variables)
    return _compose


@pytest.fixture
def sample_site(site_dir):
    """A small but complete site exercising every input directory."""
    write_file(site_dir, 'variables.txt',
               '$(site.name) = "Sample"\n'
               '$(site.url) = "https://example.com/"\n')
    write_file(site_dir, 'ignore.txt', '\\.psd$\n')
    write_file(site_dir, 'layout/main.html',
               '<html><head><title>{{ $(title) }}</title>'
               '<link href="assets/site.css" rel="stylesheet"></head>\n'
               '<body>\n{{ content }}\n</body></html>\n')
    write_file(site_dir, 'include/nav.html', '<a href="index.html">{{ $(site.name) }}</a>\n')
    write_file(site_dir, 'pages/index.html',
               '{{ layout main.html $(title) = "Home" }}\n'
               '{{ include nav.html }}\n'
               '<p>Welcome</p>\n')
    write_file(site_dir, 'pages/blog/post.html',
               '{{ layout main.html $(title) = "Post" }}\n'
               '{{ include nav.html }}\n'
               '<a href="https://example.org/">out</a> <a href="#top">top</a>\n')
    write_file(site_dir, 'pages/private/norobots.txt', '')
    write_file(site_dir, 'pages/private/secret.html', '<p>Secret</p>\n')
    write_file(site_dir, 'pages/include/local.html', '<p>Not a page</p>\n')
    write_file(site_dir, 'markdown/about.md', '# About\n\nSome *text*.\n')
    write_file(site_dir, 'assets/site.css', 'body {\n    color: red;\n}\n')
    write_file(site_dir, 'assets/app.js', 'function add(a, b) {\n    return a + b;\n}\n')
    write_file(site_dir, 'assets/source.psd', 'binary')
    write_file(site_dir, 'rootfiles/favicon.ico', 'icon')
    return site_dir
