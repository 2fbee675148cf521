"""
Per-URL render contexts and the store that accumulates them across phases.

Every mutation here is a plain synchronous method, so two concurrent units
can never interleave a read and its matching write.
"""

from typing import Any, Dict, Iterable, List, Optional

from .errors import UsageError


class RenderContext(dict):
    """All data needed to render one URL.

    Internal bookkeeping lives under keys starting with ``_``.
    """

    @property
    def url(self) -> str:
        return self['url']

    @property
    def source_file(self) -> Optional[str]:
        return self.get('_prerender_source_file')

    @property
    def page_id(self) -> Optional[str]:
        return self.get('_page_id')

    def with_globals(self, global_context: Dict[str, Any]) -> 'RenderContext':
        """Return a new context layered over ``global_context``."""
        merged = RenderContext(global_context)
        merged.update(self)
        return merged


class PageContextStore:
    """Insertion-ordered collection holding exactly one RenderContext per URL."""

    def __init__(self, strict_duplicate_urls=False):
        self.strict_duplicate_urls = strict_duplicate_urls
        self._contexts: Dict[str, RenderContext] = {}

    def __len__(self):
        return len(self._contexts)

    def __contains__(self, url):
        return url in self._contexts

    def __iter__(self):
        return iter(list(self._contexts.values()))

    def get(self, url: str) -> Optional[RenderContext]:
        return self._contexts.get(url)

    def contexts(self) -> List[RenderContext]:
        return list(self._contexts.values())

    def add_hook_result(self, url: str, page_context: Optional[Dict[str, Any]], source_file: str) -> RenderContext:
        """Find or create the context for ``url`` and merge hook data into it.

        A later hook overlays the keys of an earlier one and takes over the
        provenance, unless ``strict_duplicate_urls`` is set.
        """
        _check_url(url)
        context = self._contexts.get(url)
        if context is None:
            context = RenderContext(url=url, _prerender_source_file=source_file)
            self._contexts[url] = context
        else:
            previous = context.source_file
            if self.strict_duplicate_urls and previous is not None and previous != source_file:
                raise UsageError(
                    f"The URL `{url}` is returned by the `prerender()` hooks of both `{previous}` "
                    f"and `{source_file}`. Make sure each URL is returned by only one hook."
                )
            context['_prerender_source_file'] = source_file
        if page_context is not None:
            context['_page_context_already_provided_by_prerender_hook'] = True
            context.update(page_context)
        return context

    def add_static(self, url: str, page_id: str, data: Optional[Dict[str, Any]] = None) -> Optional[RenderContext]:
        """Create the context of a page with a static route.

        Returns None, leaving the store untouched, if ``url`` already has one.
        """
        _check_url(url)
        if url in self._contexts:
            return None
        context = RenderContext(url=url, _prerender_source_file=None, route_params={}, _page_id=page_id)
        if data:
            context.update(data)
        self._contexts[url] = context
        return context

    def replace(self, contexts: Iterable[Dict[str, Any]], source_file: Optional[str] = None) -> None:
        """Swap the whole collection, e.g. for contexts returned by ``on_before_prerender()``."""
        replaced: Dict[str, RenderContext] = {}
        for context in contexts:
            if not isinstance(context, dict) or not isinstance(context.get('url'), str):
                raise UsageError(
                    f"`prerender_page_contexts` returned by `{source_file}` should be a list of dicts, "
                    f"each with a `url` string."
                )
            _check_url(context['url'])
            if context['url'] in replaced:
                replaced[context['url']].update(context)
            else:
                replaced[context['url']] = RenderContext(context)
        self._contexts = replaced


def _check_url(url):
    if not url.startswith('/'):
        raise UsageError(f"The URL `{url}` should start with `/`.")
