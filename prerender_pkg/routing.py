"""
Route resolution for page files.

A page is reached through its filesystem route (derived from its page id),
or through the ``route`` export of its ``.page.route.py`` file, which is a
route string such as ``/product/@id`` or a route function.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from urllib.parse import unquote, urlsplit

from .errors import UsageError
from .hooks import call_hook
from .pages import PageFile, is_error_page

# Higher wins when several routes match the same URL.
PRECEDENCE_STATIC = 3
PRECEDENCE_PARAMETERIZED = 2
PRECEDENCE_FUNCTION = 1


@dataclass
class PageRoute:
    page_id: str
    filesystem_route: str
    route_file: Optional[PageFile] = None
    route_value: Any = None


def _segments(path):
    return [segment for segment in path.split('/') if segment]


def is_static_route(route_string: str) -> bool:
    """True if the route string has no ``@param`` segment and no ``*`` wildcard."""
    return not any(s.startswith('@') or s == '*' for s in _segments(route_string))


def get_filesystem_route(page_id: str, pages_dir: str = 'pages') -> str:
    """``/pages/blog/index`` -> ``/blog``, ``/pages/about`` -> ``/about``."""
    segments = _segments(page_id)
    prefix = _segments(pages_dir.replace('\\', '/'))
    if segments[:len(prefix)] == prefix:
        segments = segments[len(prefix):]
    if segments and segments[-1] == 'index':
        segments = segments[:-1]
    return '/' + '/'.join(segments)


def resolve_route_string(route_string: str, url_pathname: str) -> Optional[Dict[str, str]]:
    """Match a URL pathname against a route string.

    Returns the route params on a match, None otherwise. ``*`` is only
    allowed as the last segment and captures the rest of the pathname.
    """
    route_segments = _segments(route_string)
    url_segments = _segments(url_pathname)
    route_params = {}
    for i, segment in enumerate(route_segments):
        if segment == '*':
            if i != len(route_segments) - 1:
                raise UsageError(f"The route string `{route_string}` should only use `*` as its last segment.")
            route_params['*'] = '/'.join(url_segments[i:])
            return route_params
        if i >= len(url_segments):
            return None
        if segment.startswith('@'):
            route_params[segment[1:]] = unquote(url_segments[i])
        elif segment != url_segments[i]:
            return None
    if len(url_segments) != len(route_segments):
        return None
    return route_params


def load_page_routes(page_files: List[PageFile], all_page_ids: List[str], pages_dir: str = 'pages') -> List[PageRoute]:
    """Build one PageRoute per page id; the error page is never routed."""
    route_files = {
        p.page_id: p for p in page_files
        if p.file_type == '.page.route' and not p.is_default_page_file
    }
    page_routes = []
    for page_id in all_page_ids:
        if is_error_page(page_id):
            continue
        page_route = PageRoute(page_id, get_filesystem_route(page_id, pages_dir))
        route_file = route_files.get(page_id)
        if route_file is not None:
            exports = route_file.load_file()
            if 'route' not in exports:
                raise UsageError(f"{route_file.file_path} should export `route`.")
            route_value = exports['route']
            if isinstance(route_value, str):
                if not route_value.startswith('/'):
                    raise UsageError(f"The route string `{route_value}` of {route_file.file_path} should start with `/`.")
            elif not callable(route_value):
                raise UsageError(f"`route` exported by {route_file.file_path} should be a string or a function.")
            page_route.route_file = route_file
            page_route.route_value = route_value
        page_routes.append(page_route)
    return page_routes


def _normalize_route_function_result(result, file_path):
    if isinstance(result, bool):
        return result, {}
    if isinstance(result, dict) and isinstance(result.get('match'), bool):
        route_params = result.get('route_params', {})
        if not isinstance(route_params, dict):
            raise UsageError(f"The route function of {file_path} returned `route_params` that isn't a dict.")
        return result['match'], dict(route_params)
    raise UsageError(
        f"The route function of {file_path} should return a boolean or a dict "
        f"`{{'match': bool, 'route_params': {{...}}}}`."
    )


class Router:
    """Resolves a page context's URL to a page id."""

    def __init__(self, page_routes: List[PageRoute]):
        self.page_routes = page_routes

    async def route(self, page_context) -> Dict[str, Any]:
        """
        Returns ``{'page_id': ..., 'route_params': {...}}``, ``{'page_id': None}``
        when nothing matches, or ``{'hook_error': err}`` when a route function raised.
        """
        pathname = urlsplit(page_context['url']).path or '/'
        matches = []
        for order, page_route in enumerate(self.page_routes):
            route_value = page_route.route_value
            if page_route.route_file is None:
                if '/' + '/'.join(_segments(pathname)) == page_route.filesystem_route:
                    matches.append((PRECEDENCE_STATIC, 0, order, page_route.page_id, {}))
            elif isinstance(route_value, str):
                route_params = resolve_route_string(route_value, pathname)
                if route_params is not None:
                    precedence = PRECEDENCE_STATIC if is_static_route(route_value) else PRECEDENCE_PARAMETERIZED
                    matches.append((precedence, -len(route_params), order, page_route.page_id, route_params))
            else:
                try:
                    result = await call_hook(route_value, page_context)
                except Exception as err:
                    return {'hook_error': err}
                match, route_params = _normalize_route_function_result(result, page_route.route_file.file_path)
                if match:
                    matches.append((PRECEDENCE_FUNCTION, 0, order, page_route.page_id, route_params))

        if not matches:
            return {'page_id': None}
        matches.sort(key=lambda m: (-m[0], -m[1], m[2]))
        _, _, _, page_id, route_params = matches[0]
        return {'page_id': page_id, 'route_params': route_params}
