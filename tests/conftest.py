"""Test configuration and fixtures for prerenderer tests."""

import logging
import os
import shutil
import sys
import tempfile
import textwrap
from pathlib import Path

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from prerender_pkg.errors import reset_warnings


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    temp_dir = tempfile.mkdtemp()
    yield temp_dir
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def make_site(temp_dir):
    """Write a tree of page files and return the project root."""
    def _make_site(files):
        root = Path(temp_dir)
        for rel_path, content in files.items():
            file_path = root / rel_path
            file_path.parent.mkdir(parents=True, exist_ok=True)
            file_path.write_text(textwrap.dedent(content), encoding='utf-8')
        return str(root)
    return _make_site


@pytest.fixture
def output_file(temp_dir):
    """Read a file written under dist/client/, or None if it does not exist."""
    def _output_file(rel_path):
        file_path = os.path.join(temp_dir, 'dist', 'client', *rel_path.split('/'))
        if not os.path.exists(file_path):
            return None
        with open(file_path, encoding='utf-8') as f:
            return f.read()
    return _output_file


@pytest.fixture(autouse=True)
def clean_logging():
    """Forget emitted warnings and drop handlers added by Prerenderer."""
    reset_warnings()
    yield
    logger = logging.getLogger('Prerender')
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
    reset_warnings()
