"""
Writes rendered documents to ``<root>/<out_dir>/client/`` or hands them to
a caller-supplied ``on_page_prerender`` callback instead.
"""

import asyncio
import logging
import os
import posixpath
from typing import List
from urllib.parse import urlsplit

from .errors import UsageError
from .hooks import call_hook
from .models import ExclusionEntry, RenderedDocument

HTML_EXTENSION = '.html'
PAGE_CONTEXT_EXTENSION = '.pageContext.json'


def get_file_url(url: str, file_extension: str, do_not_create_extra_directory: bool) -> str:
    """
    Map a URL to the path of its output file, relative to the client directory.

    ``/about`` becomes ``/about/index.html``, or ``/about.html`` when no extra
    directory should be created. ``/`` always becomes ``/index.html``. Query
    string and fragment are dropped. ``.`` and ``..`` segments are rejected.
    """
    pathname = urlsplit(url).path or '/'
    assert pathname.startswith('/'), url
    if any(segment in ('.', '..') for segment in pathname.split('/')):
        raise UsageError(f"The URL `{url}` contains a `.` or `..` segment and can't be written to a file.")
    if pathname == '/':
        return '/index' + file_extension
    if do_not_create_extra_directory:
        return pathname.rstrip('/') + file_extension
    if pathname.endswith('/'):
        return pathname + 'index' + file_extension
    return pathname + '/index' + file_extension


class OutputWriter:
    """Writes one or two files per RenderedDocument through the task runner."""

    def __init__(self, root, out_dir, runner, on_page_prerender=None, log_level='info'):
        if not out_dir or '\\' in out_dir or os.path.isabs(out_dir):
            raise UsageError(f"`out_dir` should be a relative path using forward slashes, got `{out_dir}`.")
        out_dir_segments = out_dir.split('/')
        if 'server' in out_dir_segments or 'client' in out_dir_segments:
            raise UsageError(f"`out_dir` should not contain a `client` or `server` directory, got `{out_dir}`.")
        self.root = root
        self.out_dir = out_dir
        self.runner = runner
        self.on_page_prerender = on_page_prerender
        self.log_level = log_level
        self.logger = logging.getLogger('Prerender')
        self.files_written = 0

    def write_jobs(self, document: RenderedDocument):
        """The ``(document, extension, content)`` files a document produces."""
        jobs = [(document, HTML_EXTENSION, document.document_html)]
        if document.page_context_serialized is not None:
            jobs.append((document, PAGE_CONTEXT_EXTENSION, document.page_context_serialized))
        return jobs

    async def write_all(self, documents: List[RenderedDocument], exclusions: List[ExclusionEntry]):
        excluded_page_ids = {entry.page_id for entry in exclusions}
        jobs = []
        for document in documents:
            assert document.url.startswith('/'), document.url
            assert document.page_id not in excluded_page_ids, document.page_id
            # Reject unwritable URLs before the first file is written.
            get_file_url(document.url, HTML_EXTENSION, document.do_not_create_extra_directory)
            jobs.extend(self.write_jobs(document))
        await self.runner.run_all(self._write_job, jobs)

    async def _write_job(self, job):
        document, file_extension, file_content = job
        await self.write(document.url, document.page_context, file_extension, file_content,
                         document.do_not_create_extra_directory)

    async def write(self, url, page_context, file_extension, file_content, do_not_create_extra_directory):
        # The side-channel context file is never nested.
        no_extra_dir = file_extension == PAGE_CONTEXT_EXTENSION or do_not_create_extra_directory
        file_url = get_file_url(url, file_extension, no_extra_dir)
        file_path_relative = file_url[1:].replace('/', os.sep)
        assert not file_path_relative.startswith(os.sep), file_path_relative
        file_path = os.path.join(self.root, self.out_dir, 'client', file_path_relative)

        if self.on_page_prerender is not None:
            augmented = dict(page_context)
            augmented['_prerender_result'] = {
                'file_path': file_path,
                'file_content': file_content,
            }
            await call_hook(self.on_page_prerender, augmented)
            return

        await asyncio.to_thread(self._write_file, file_path, file_content)
        self.files_written += 1
        if self.log_level == 'info':
            self.logger.info(posixpath.join(self.out_dir, 'client', file_url[1:]))

    def _write_file(self, file_path, file_content):
        os.makedirs(os.path.dirname(file_path), exist_ok=True)
        with open(file_path, 'w', encoding='utf-8') as f:
            f.write(file_content)
