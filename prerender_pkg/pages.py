"""
Page file discovery and loading.

A page directory holds files named ``<name>.page.server.py``,
``<name>.page.route.py``, ``<name>.page.html`` or ``<name>.page.md``.
Files whose name starts with ``_default`` apply to every page.
"""

import hashlib
import importlib.util
import logging
import os
from typing import Dict, List, Optional, Tuple

from .errors import HookError

PAGE_FILE_SUFFIXES = {
    '.page.server.py': '.page.server',
    '.page.route.py': '.page.route',
    '.page.html': '.page',
    '.page.md': '.page',
}


class PageFile:
    """One file belonging to a page, with lazily imported exports."""

    def __init__(self, file_path, page_id, file_type, is_default_page_file=False):
        self.file_path = file_path
        self.page_id = page_id
        self.file_type = file_type
        self.is_default_page_file = is_default_page_file
        self.file_exports: Optional[Dict[str, object]] = None
        self.logger = logging.getLogger('Prerender')

    def __repr__(self):
        return f"PageFile({self.file_path!r}, {self.file_type!r})"

    @property
    def is_python(self):
        return self.file_path.endswith('.py')

    def load_file(self):
        """Import the file once; later calls return the cached exports."""
        if self.file_exports is not None:
            return self.file_exports
        if not self.is_python:
            self.file_exports = {}
            return self.file_exports
        module_name = 'prerender_page_' + hashlib.md5(self.file_path.encode()).hexdigest()
        spec = importlib.util.spec_from_file_location(module_name, self.file_path)
        module = importlib.util.module_from_spec(spec)
        try:
            spec.loader.exec_module(module)
        except Exception as e:
            raise HookError(f"Failed to load page file {self.file_path}: {e!r}") from e
        self.file_exports = {
            name: getattr(module, name) for name in dir(module) if not name.startswith('_')
        }
        self.logger.debug(f"Loaded page file {self.file_path}")
        return self.file_exports


def split_page_file_name(file_name: str) -> Optional[Tuple[str, str]]:
    """Return ``(stem, file_type)`` for a page file name, or None."""
    for suffix, file_type in PAGE_FILE_SUFFIXES.items():
        if file_name.endswith(suffix) and len(file_name) > len(suffix):
            return file_name[:-len(suffix)], file_type
    return None


def is_error_page(page_id: str) -> bool:
    return page_id.rstrip('/').split('/')[-1] == '_error'


def discover_page_files(root: str, pages_dir: str = 'pages') -> Tuple[List[PageFile], List[str]]:
    """
    Walk ``root/pages_dir`` and collect every page file.

    Returns:
        A tuple of the page files (sorted by path) and the sorted list of
        distinct page ids, default page files excluded.
    """
    pages_path = os.path.join(root, pages_dir)
    page_files = []
    if not os.path.isdir(pages_path):
        return page_files, []

    for dir_path, dir_names, file_names in os.walk(pages_path):
        dir_names[:] = sorted(d for d in dir_names if d != '__pycache__' and not d.startswith('.'))
        for file_name in sorted(file_names):
            parsed = split_page_file_name(file_name)
            if parsed is None:
                continue
            stem, file_type = parsed
            file_path = os.path.join(dir_path, file_name)
            rel_dir = os.path.relpath(dir_path, root).replace(os.sep, '/')
            page_id = '/' + '/'.join(p for p in (rel_dir, stem) if p and p != '.')
            page_files.append(PageFile(
                file_path, page_id, file_type,
                is_default_page_file=stem.startswith('_default')
            ))

    page_files.sort(key=lambda p: p.file_path)
    all_page_ids = sorted({p.page_id for p in page_files if not p.is_default_page_file})
    return page_files, all_page_ids
