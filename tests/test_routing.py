"""Tests for route resolution."""

import asyncio
import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from prerender_pkg.errors import UsageError
from prerender_pkg.pages import discover_page_files, is_error_page
from prerender_pkg.routing import (
    PageRoute,
    Router,
    get_filesystem_route,
    is_static_route,
    load_page_routes,
    resolve_route_string,
)


class TestRouteStrings:
    """Test cases for route string helpers."""

    @pytest.mark.parametrize('route, expected', [
        ('/', True),
        ('/about', True),
        ('/product/@id', False),
        ('/docs/*', False),
    ])
    def test_is_static_route(self, route, expected):
        assert is_static_route(route) is expected

    @pytest.mark.parametrize('page_id, expected', [
        ('/pages/index', '/'),
        ('/pages/about', '/about'),
        ('/pages/blog/index', '/blog'),
        ('/pages/docs/intro', '/docs/intro'),
    ])
    def test_filesystem_route(self, page_id, expected):
        assert get_filesystem_route(page_id, 'pages') == expected

    def test_filesystem_route_nested_pages_dir(self):
        assert get_filesystem_route('/src/pages/about', 'src/pages') == '/about'

    @pytest.mark.parametrize('route, pathname, expected', [
        ('/product/@id', '/product/42', {'id': '42'}),
        ('/product/@id', '/product', None),
        ('/product/@id', '/product/42/reviews', None),
        ('/@lang/about', '/fr/about', {'lang': 'fr'}),
        ('/docs/*', '/docs/a/b', {'*': 'a/b'}),
        ('/about', '/about/', {}),
        ('/about', '/contact', None),
        ('/post/@slug', '/post/hello%20world', {'slug': 'hello world'}),
    ])
    def test_resolve_route_string(self, route, pathname, expected):
        assert resolve_route_string(route, pathname) == expected

    def test_wildcard_must_be_last(self):
        with pytest.raises(UsageError):
            resolve_route_string('/*/x', '/a/x')

    def test_is_error_page(self):
        assert is_error_page('/pages/_error')
        assert not is_error_page('/pages/error')


class TestRouter:
    """Test cases for Router."""

    def route(self, router, url):
        return asyncio.run(router.route({'url': url}))

    def test_static_beats_parameterized(self):
        router = Router([
            PageRoute('/pages/product', '/product', route_file=object(), route_value='/product/@id'),
            PageRoute('/pages/new', '/new', route_file=object(), route_value='/product/new'),
        ])
        assert self.route(router, '/product/new') == {'page_id': '/pages/new', 'route_params': {}}
        assert self.route(router, '/product/7') == {'page_id': '/pages/product', 'route_params': {'id': '7'}}

    def test_filesystem_route_with_query(self):
        router = Router([PageRoute('/pages/about', '/about')])
        assert self.route(router, '/about?ref=x')['page_id'] == '/pages/about'

    def test_no_match(self):
        router = Router([PageRoute('/pages/about', '/about')])
        assert self.route(router, '/missing') == {'page_id': None}

    def test_route_function(self):
        class RouteFile:
            file_path = 'pages/user.page.route.py'

        def user_route(page_context):
            if page_context['url'].startswith('/user/'):
                return {'match': True, 'route_params': {'name': page_context['url'][6:]}}
            return False

        router = Router([PageRoute('/pages/user', '/user', route_file=RouteFile(), route_value=user_route)])
        assert self.route(router, '/user/ada') == {'page_id': '/pages/user', 'route_params': {'name': 'ada'}}
        assert self.route(router, '/other') == {'page_id': None}

    def test_route_function_error_is_reported(self):
        class RouteFile:
            file_path = 'pages/user.page.route.py'

        def broken(page_context):
            raise KeyError('boom')

        router = Router([PageRoute('/pages/user', '/user', route_file=RouteFile(), route_value=broken)])
        result = self.route(router, '/user/ada')
        assert isinstance(result['hook_error'], KeyError)

    def test_route_function_invalid_result(self):
        class RouteFile:
            file_path = 'pages/user.page.route.py'

        router = Router([PageRoute('/pages/user', '/user', route_file=RouteFile(), route_value=lambda c: 'yes')])
        with pytest.raises(UsageError, match='should return a boolean'):
            self.route(router, '/user/ada')


class TestLoadPageRoutes:
    """Test cases for load_page_routes."""

    def test_routes_from_files(self, make_site):
        root = make_site({
            'pages/index.page.html': 'home',
            'pages/product.page.html': 'product',
            'pages/product.page.route.py': "route = '/product/@id'\n",
            'pages/_error.page.html': 'error',
            'pages/_default.page.html': '{{ content }}',
        })
        page_files, all_page_ids = discover_page_files(root, 'pages')
        assert all_page_ids == ['/pages/_error', '/pages/index', '/pages/product']

        page_routes = {r.page_id: r for r in load_page_routes(page_files, all_page_ids, 'pages')}
        assert set(page_routes) == {'/pages/index', '/pages/product'}
        assert page_routes['/pages/index'].filesystem_route == '/'
        assert page_routes['/pages/index'].route_file is None
        assert page_routes['/pages/product'].route_value == '/product/@id'

    def test_route_file_without_route(self, make_site):
        root = make_site({
            'pages/product.page.html': 'product',
            'pages/product.page.route.py': "ROUTE = '/x'\n",
        })
        page_files, all_page_ids = discover_page_files(root, 'pages')
        with pytest.raises(UsageError, match='should export `route`'):
            load_page_routes(page_files, all_page_ids, 'pages')
