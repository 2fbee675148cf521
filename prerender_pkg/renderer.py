"""
Default page renderer: Jinja2 templates, Markdown pages through mistune,
or a ``render()`` function exported by the page's server file.
"""

import json
import logging
import os
from typing import Any, Dict, List, Optional, Tuple

import mistune
from jinja2 import Environment, FileSystemLoader, TemplateNotFound, TemplateSyntaxError

from .context import RenderContext
from .errors import HookError, UsageError
from .hooks import call_hook
from .pages import PageFile, is_error_page


class PageRenderer:
    """Renders the document of a page and, with a client router, its serialized context."""

    def __init__(self, root: str, page_files: List[PageFile], all_page_ids: List[str], client_router: bool = False):
        self.root = root
        self.page_files = page_files
        self.all_page_ids = all_page_ids
        self.client_router = client_router
        self.logger = logging.getLogger('Prerender')
        self.env = Environment(loader=FileSystemLoader(root))
        self.markdown_parser = self.create_markdown_parser()

        self.server_files = {}
        self.templates = {}
        self.default_server_files = []
        self.layout = None
        for page_file in page_files:
            if page_file.is_default_page_file:
                if page_file.file_type == '.page.server':
                    self.default_server_files.append(page_file)
                elif page_file.file_type == '.page' and page_file.file_path.endswith('.html'):
                    self.layout = page_file
            elif page_file.file_type == '.page.server':
                self.server_files[page_file.page_id] = page_file
            elif page_file.file_type == '.page':
                self.templates[page_file.page_id] = page_file

    def create_markdown_parser(self):
        """Create a Mistune markdown parser with a custom renderer."""
        class CustomRenderer(mistune.HTMLRenderer):
            def __init__(self):
                super().__init__(escape=False)

            def block_code(self, code, info=None):
                escaped_code = mistune.escape(code)
                return '<pre style="white-space: pre-wrap;"><code>{}</code></pre>'.format(escaped_code)
        return mistune.create_markdown(
            renderer=CustomRenderer(),
            plugins=['table', 'task_lists', 'strikethrough']
        )

    def template_name(self, page_file: PageFile) -> str:
        return os.path.relpath(page_file.file_path, self.root).replace(os.sep, '/')

    async def load_page_files_server(self, page_id: str) -> Dict[str, Any]:
        """Exports of the default server files overlaid by the page's own server file."""
        exports = {}
        for page_file in self.default_server_files:
            exports.update(page_file.load_file())
        page_file = self.server_files.get(page_id)
        if page_file is not None:
            exports.update(page_file.load_file())
        exports.pop('on_before_prerender', None)
        return {'_page_exports': exports}

    async def render_page(self, page_context: RenderContext) -> Tuple[str, Optional[str]]:
        """Returns the document HTML and the serialized context (None without a client router)."""
        await self.call_on_before_render(page_context)
        document_html = await self.render_html(page_context)
        page_context_serialized = None
        if self.client_router:
            page_context_serialized = serialize_page_context(page_context)
        return document_html, page_context_serialized

    async def render_static_404(self, global_context: Dict[str, Any]) -> Optional[Tuple[str, RenderContext]]:
        """Render the error page as a static 404 document, if the project has one."""
        error_page_id = next((p for p in self.all_page_ids if is_error_page(p)), None)
        if error_page_id is None:
            return None
        page_context = RenderContext(global_context)
        page_context.update(url='/404', is_404=True, route_params={}, _page_id=error_page_id)
        page_context.update(await self.load_page_files_server(error_page_id))
        await self.call_on_before_render(page_context)
        document_html = await self.render_html(page_context)
        return document_html, page_context

    async def call_on_before_render(self, page_context: RenderContext) -> None:
        # A prerender() hook that returned page_context replaces on_before_render().
        if page_context.get('_page_context_already_provided_by_prerender_hook'):
            return
        exports = page_context.get('_page_exports') or {}
        hook = exports.get('on_before_render')
        if hook is None:
            return
        source = self._server_file_path(page_context.page_id)
        if not callable(hook):
            raise UsageError(f"`on_before_render` exported by {source} should be a function.")
        try:
            result = await call_hook(hook, page_context)
        except Exception as e:
            raise HookError(f"The `on_before_render()` hook of {source} raised {e!r}") from e
        if result is None:
            return
        if not isinstance(result, dict) or not isinstance(result.get('page_context'), dict):
            raise UsageError(
                f"The `on_before_render()` hook of {source} should return `None` or `{{'page_context': {{...}}}}`."
            )
        page_context.update(result['page_context'])

    async def render_html(self, page_context: RenderContext) -> str:
        page_id = page_context.page_id
        exports = page_context.get('_page_exports') or {}
        render = exports.get('render')
        if render is not None:
            source = self._server_file_path(page_id)
            if not callable(render):
                raise UsageError(f"`render` exported by {source} should be a function.")
            try:
                document_html = await call_hook(render, page_context)
            except Exception as e:
                raise HookError(f"The `render()` hook of {source} raised {e!r}") from e
        else:
            document_html = self.render_template(page_id, page_context)
        if not isinstance(document_html, str):
            raise UsageError(f"Rendering page {page_id} should produce a string, got {type(document_html).__name__}.")
        return document_html

    def render_template(self, page_id: str, page_context: RenderContext) -> str:
        page_file = self.templates.get(page_id)
        if page_file is None:
            raise UsageError(f"Page {page_id} has neither a `render()` function nor a `.page.html`/`.page.md` template.")
        try:
            template = self.env.get_template(self.template_name(page_file))
            rendered = template.render(dict(page_context), page_context=page_context)
            if not page_file.file_path.endswith('.md'):
                return rendered
            content = self.markdown_parser(rendered)
            if self.layout is None:
                return content
            layout = self.env.get_template(self.template_name(self.layout))
            return layout.render(dict(page_context), page_context=page_context, content=content)
        except (TemplateNotFound, TemplateSyntaxError) as e:
            raise UsageError(f"Template error for page {page_id}: {e}") from e

    def _server_file_path(self, page_id):
        page_file = self.server_files.get(page_id)
        if page_file is not None:
            return page_file.file_path
        return ', '.join(p.file_path for p in self.default_server_files) or page_id


def serialize_page_context(page_context: Dict[str, Any]) -> str:
    """JSON of every public, non-callable key of the context."""
    public = {
        key: value for key, value in page_context.items()
        if not key.startswith('_') and not callable(value)
    }
    return json.dumps(public, default=str)
