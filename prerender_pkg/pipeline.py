"""
The prerender pipeline.

Phases run strictly in order, each one fully drained before the next starts:

1. ``prerender()`` hooks of every server page file
2. pages with a static route
3. the single global ``on_before_prerender()`` hook
4. routing and rendering of every collected URL
5. the static 404 fallback

Each phase returns what it produced and ``Prerenderer.run()`` applies it, so
merge order follows the page inventory rather than completion order.
"""

import asyncio
import logging
import os
from typing import Any, Callable, Dict, List, Optional, Tuple

from . import __version__
from .context import PageContextStore, RenderContext
from .errors import HookError, UsageError, raise_hook_error, warn_once
from .hooks import HookUrl, call_hook, normalize_before_prerender_result, normalize_prerender_result
from .models import ExclusionEntry, RenderedDocument
from .pages import discover_page_files
from .renderer import PageRenderer
from .routing import Router, is_static_route, load_page_routes
from .runner import BoundedTaskRunner
from .settings import PrerenderSettings
from .validation import check_contradictions, warn_missing_pages
from .writer import OutputWriter

REJECTED_OPTIONS = ('no_extra_dir', 'partial', 'parallel')
IGNORED_OPTIONS = ('base', 'root', 'out_dir')


class Prerenderer:
    """Pre-renders every page of a project into static documents."""

    def __init__(self, root='.', pages='pages', out_dir='dist', partial=False, no_extra_dir=False,
                 parallel=None, client_router=False, strict_duplicate_urls=False, log_file=None,
                 on_page_prerender=None, page_context_init=None):
        self.root = os.path.abspath(root)
        self.pages = pages
        self.out_dir = out_dir
        self.partial = partial
        self.no_extra_dir = no_extra_dir
        self.client_router = client_router
        self.log_file = log_file
        self.on_page_prerender = on_page_prerender
        self.page_context_init = page_context_init or {}
        self.log_level = 'warn' if on_page_prerender is not None else 'info'

        PrerenderSettings.validate({
            'pages': pages,
            'out_dir': out_dir,
            'partial': partial,
            'no_extra_dir': no_extra_dir,
            'parallel': parallel,
            'client_router': client_router,
            'strict_duplicate_urls': strict_duplicate_urls,
            'log_file': log_file,
        })
        self.setup_logging()

        self.runner = BoundedTaskRunner(parallel)
        self.store = PageContextStore(strict_duplicate_urls=strict_duplicate_urls)
        self.page_files, self.all_page_ids = discover_page_files(self.root, pages)
        self.renderer = PageRenderer(self.root, self.page_files, self.all_page_ids, client_router=client_router)
        self.router = None
        self.writer = OutputWriter(self.root, out_dir, self.runner,
                                   on_page_prerender=on_page_prerender, log_level=self.log_level)

        self._on_before_prerender_file = None
        self.exclusions: List[ExclusionEntry] = []
        self.prerendered_page_ids: Dict[str, RenderContext] = {}
        self.documents: List[RenderedDocument] = []
        self.missing_page_ids: List[str] = []

    def setup_logging(self):
        """Set up logging configuration."""
        self.logger = logging.getLogger('Prerender')
        self.logger.setLevel(logging.INFO if self.log_level == 'info' else logging.WARNING)

        if not any(getattr(h, '_prerender_console', False) for h in self.logger.handlers):
            console_handler = logging.StreamHandler()
            console_handler.setFormatter(logging.Formatter('%(message)s'))
            console_handler._prerender_console = True
            self.logger.addHandler(console_handler)

        if self.log_file:
            log_path = os.path.abspath(os.path.join(self.root, self.log_file))
            if not any(getattr(h, 'baseFilename', None) == log_path for h in self.logger.handlers):
                os.makedirs(os.path.dirname(log_path), exist_ok=True)
                file_handler = logging.FileHandler(log_path)
                file_handler.setLevel(logging.DEBUG)
                file_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
                self.logger.addHandler(file_handler)
                self.logger.setLevel(logging.DEBUG)

    def create_global_context(self) -> Dict[str, Any]:
        global_context = {
            '_is_pre_rendering': True,
            '_no_extra_dir': self.no_extra_dir,
            '_root': self.root,
            '_uses_client_router': self.client_router,
            '_page_files_all': self.page_files,
            '_all_page_ids': self.all_page_ids,
        }
        global_context.update(self.page_context_init)
        return global_context

    async def run(self) -> List[RenderedDocument]:
        """Run every phase, write the documents and report coverage."""
        if self.log_level == 'info':
            self.logger.info(f"prerenderer {__version__} pre-rendering HTML...")

        global_context = self.create_global_context()

        hook_results, self.exclusions = await self.call_prerender_hooks()
        for source_file, hook_urls in hook_results:
            for url, page_context in hook_urls:
                self.store.add_hook_result(url, page_context, source_file)

        for url, page_id, data in await self.handle_pages_with_static_routes():
            self.store.add_static(url, page_id, data)

        addendum = await self.call_on_before_prerender_hook(global_context)
        if 'prerender_page_contexts' in addendum:
            self.store.replace(addendum.pop('prerender_page_contexts'), self._on_before_prerender_file)
        global_context.update(addendum)

        for document, page_context in await self.route_and_prerender(global_context):
            self.documents.append(document)
            self.prerendered_page_ids[document.page_id] = page_context

        document_404 = await self.prerender_404_page(global_context)
        if document_404 is not None:
            self.documents.append(document_404)

        check_contradictions(self.prerendered_page_ids, self.exclusions)

        if self.log_level == 'info':
            self.logger.info(f"✓ {len(self.documents)} HTML documents pre-rendered.")

        await self.writer.write_all(self.documents, self.exclusions)

        self.missing_page_ids = warn_missing_pages(
            self.all_page_ids, self.prerendered_page_ids, self.exclusions, self.partial
        )
        return self.documents

    # Phase 1

    async def call_prerender_hooks(self) -> Tuple[List[Tuple[str, List[HookUrl]]], List[ExclusionEntry]]:
        """Call the ``prerender()`` hook of every server page file.

        Returns the normalized URLs per hook file and the pages that opted out.
        """
        server_files = [p for p in self.page_files if p.file_type == '.page.server']
        outcomes = await self.runner.run_all(self._call_prerender_hook, server_files)

        hook_results = []
        exclusions = []
        for outcome in outcomes:
            if isinstance(outcome, ExclusionEntry):
                exclusions.append(outcome)
            elif outcome is not None:
                hook_results.append(outcome)
        return hook_results, exclusions

    async def _call_prerender_hook(self, page_file):
        exports = page_file.load_file()
        if exports.get('do_not_prerender'):
            return ExclusionEntry(page_file.page_id, page_file.file_path)

        prerender = exports.get('prerender')
        if prerender is None:
            return None
        if not callable(prerender):
            raise UsageError(f"`prerender` exported by {page_file.file_path} should be a function.")

        try:
            prerender_result = await call_hook(prerender)
        except Exception as e:
            raise HookError(f"The `prerender()` hook of {page_file.file_path} raised {e!r}") from e
        hook_urls = normalize_prerender_result(prerender_result, page_file.file_path)
        self.logger.debug(f"{page_file.file_path} returned {len(hook_urls)} URL(s)")
        return page_file.file_path, hook_urls

    # Phase 2

    async def handle_pages_with_static_routes(self) -> List[Tuple[str, str, Dict[str, Any]]]:
        """Collect ``(url, page_id, server data)`` for pages with a parameter-free route."""
        page_routes = load_page_routes(self.page_files, self.all_page_ids, self.pages)
        self.router = Router(page_routes)
        outcomes = await self.runner.run_all(self._handle_page_with_static_route, page_routes)
        return [outcome for outcome in outcomes if outcome is not None]

    async def _handle_page_with_static_route(self, page_route):
        page_id = page_route.page_id
        if any(entry.page_id == page_id for entry in self.exclusions):
            return None

        if page_route.route_file is not None:
            route_value = page_route.route_value
            if not (isinstance(route_value, str) and is_static_route(route_value)):
                # Route function or parameterized route string
                return None
            url = route_value
        else:
            url = page_route.filesystem_route

        # Already provided by a prerender() hook
        if url in self.store:
            return None

        data = await self.renderer.load_page_files_server(page_id)
        return url, page_id, data

    # Phase 3

    async def call_on_before_prerender_hook(self, global_context: Dict[str, Any]) -> Dict[str, Any]:
        """Call the global ``on_before_prerender()`` hook, if any, and return its addendum."""
        default_server_files = [
            p for p in self.page_files if p.file_type == '.page.server' and p.is_default_page_file
        ]
        hooks = []
        for page_file in default_server_files:
            hook = page_file.load_file().get('on_before_prerender')
            if hook is not None:
                hooks.append((page_file.file_path, hook))
        if not hooks:
            return {}
        if len(hooks) > 1:
            raise UsageError(
                "There can be only one `on_before_prerender()` hook, but it is defined in: "
                + ', '.join(file_path for file_path, _ in hooks)
            )

        file_path, hook = hooks[0]
        if not callable(hook):
            raise UsageError(f"`on_before_prerender` exported by {file_path} should be a function.")
        self._on_before_prerender_file = file_path

        contexts_before = self.store.contexts()
        page_contexts = list(contexts_before)
        hook_input = dict(global_context)
        hook_input['prerender_page_contexts'] = page_contexts
        try:
            result = await call_hook(hook, hook_input)
        except Exception as e:
            raise HookError(f"The `on_before_prerender()` hook of {file_path} raised {e!r}") from e
        addendum = normalize_before_prerender_result(result, file_path)

        # The hook may also edit the list it was given in place.
        if 'prerender_page_contexts' not in addendum:
            live = hook_input['prerender_page_contexts']
            if len(live) != len(contexts_before) or any(a is not b for a, b in zip(live, contexts_before)):
                addendum['prerender_page_contexts'] = live
        return addendum

    # Phase 4

    async def route_and_prerender(self, global_context: Dict[str, Any]) -> List[Tuple[RenderedDocument, RenderContext]]:
        """Route every collected context to its page and render it."""
        contexts = self.store.contexts()
        return await self.runner.run_all(
            lambda context: self._route_and_prerender_page(context, global_context), contexts
        )

    async def _route_and_prerender_page(self, context, global_context):
        url = context.url
        prerender_source_file = context.source_file
        page_context = context.with_globals(global_context)

        route_result = await self.router.route(page_context)
        if 'hook_error' in route_result:
            raise_hook_error(route_result['hook_error'], source=f"the route of `{url}`")
        page_id = route_result['page_id']
        if page_id is None:
            origin = (
                f"Your `prerender()` hook defined in `{prerender_source_file}`"
                if prerender_source_file else "The list of pre-rendered page contexts"
            )
            raise UsageError(
                f"{origin} returns a URL `{url}` that doesn't match any page route. Make sure the URLs "
                f"you return in your `prerender()` hooks always match the URL of a page."
            )

        page_context['_page_id'] = page_id
        page_context['route_params'] = route_result.get('route_params', {})
        page_context.update(await self.renderer.load_page_files_server(page_id))

        document_html, page_context_serialized = await self.renderer.render_page(page_context)
        document = RenderedDocument(
            url=url,
            page_context=page_context,
            document_html=document_html,
            page_context_serialized=page_context_serialized,
            do_not_create_extra_directory=self.no_extra_dir,
            page_id=page_id,
        )
        return document, page_context

    # Phase 5

    async def prerender_404_page(self, global_context: Dict[str, Any]) -> Optional[RenderedDocument]:
        if any(document.url == '/404' for document in self.documents):
            return None
        result = await self.renderer.render_static_404(global_context)
        if result is None:
            return None
        document_html, page_context = result
        return RenderedDocument(
            url='/404',
            page_context=page_context,
            document_html=document_html,
            page_context_serialized=None,
            do_not_create_extra_directory=True,
            page_id=None,
        )


def check_outdated_options(options: Dict[str, Any]) -> None:
    """Reject or warn about options that moved to ``prerender.yml``."""
    unknown = sorted(set(options) - set(REJECTED_OPTIONS) - set(IGNORED_OPTIONS))
    if unknown:
        raise UsageError(f"[prerender()] Unknown option(s): {', '.join(unknown)}")

    for prop in REJECTED_OPTIONS:
        if options.get(prop) is not None:
            raise UsageError(
                f"[prerender()] Option `{prop}` is deprecated. Define `{prop}` in `prerender.yml` instead."
            )
    for prop in IGNORED_OPTIONS:
        if options.get(prop) is not None:
            warn_once(
                f"[prerender()] Option `{prop}` is deprecated and has no effect "
                f"(the prerenderer now determines `{prop}` from `prerender.yml`)."
            )

    root = options.get('root')
    if root is not None:
        if not isinstance(root, str):
            raise UsageError('[prerender()] Option `root` should be a string.')
        if not os.path.isabs(root):
            raise UsageError('[prerender()] The path `root` is not absolute. Make sure to provide an absolute path.')
    out_dir = options.get('out_dir')
    if out_dir is not None and not isinstance(out_dir, str):
        raise UsageError('[prerender()] Option `out_dir` should be a string.')


async def prerender(on_page_prerender: Optional[Callable] = None,
                    page_context_init: Optional[Dict[str, Any]] = None,
                    config_file: Optional[str] = None,
                    **deprecated_options) -> List[RenderedDocument]:
    """
    Pre-render every page of the project configured by ``prerender.yml``.

    Args:
        on_page_prerender: Called with each page's context (plus
            ``_prerender_result``) instead of writing files.
        page_context_init: Merged into the global context before any hook runs.
        config_file: Path to the config file; defaults to a lookup in the
            current directory.

    Returns:
        The rendered documents.
    """
    check_outdated_options(deprecated_options)
    if on_page_prerender is not None and not callable(on_page_prerender):
        raise UsageError('[prerender()] Option `on_page_prerender` should be a function.')
    if page_context_init is not None and not isinstance(page_context_init, dict):
        raise UsageError('[prerender()] Option `page_context_init` should be a dict.')

    settings = PrerenderSettings(config_file=config_file).load_settings()
    prerenderer = Prerenderer(
        **settings,
        on_page_prerender=on_page_prerender,
        page_context_init=page_context_init,
    )
    return await prerenderer.run()


def run_prerender(**options) -> List[RenderedDocument]:
    """Blocking wrapper around :func:`prerender`."""
    return asyncio.run(prerender(**options))
