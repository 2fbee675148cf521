"""Tests for hook calling and hook result normalization."""

import asyncio
import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from prerender_pkg.errors import UsageError
from prerender_pkg.hooks import (
    HookUrl,
    call_hook,
    normalize_before_prerender_result,
    normalize_prerender_result,
)

SOURCE = 'pages/a.page.server.py'


class TestNormalizePrerenderResult:
    """Test cases for normalize_prerender_result."""

    def test_mixed_list(self):
        """Strings and dicts are both accepted, order is kept."""
        result = normalize_prerender_result(['/a', {'url': '/b', 'page_context': {'x': 1}}], SOURCE)
        assert result == [HookUrl('/a', None), HookUrl('/b', {'x': 1})]

    def test_single_string(self):
        """A single URL string becomes a one-element list."""
        assert normalize_prerender_result('/only', SOURCE) == [HookUrl('/only', None)]

    def test_single_dict_without_page_context(self):
        """page_context defaults to None."""
        assert normalize_prerender_result({'url': '/x'}, SOURCE) == [HookUrl('/x', None)]

    def test_tuple_is_accepted(self):
        """Tuples behave like lists."""
        assert normalize_prerender_result(('/a', '/b'), SOURCE) == [HookUrl('/a', None), HookUrl('/b', None)]

    def test_empty_list(self):
        """A hook may return no URL at all."""
        assert normalize_prerender_result([], SOURCE) == []

    @pytest.mark.parametrize('bad', ['relative', {'url': 'relative'}, ['/ok', 'nope']])
    def test_url_must_start_with_slash(self, bad):
        """Every URL must start with `/`."""
        with pytest.raises(UsageError, match="doesn't start with `/`") as exc_info:
            normalize_prerender_result(bad, SOURCE)
        assert SOURCE in str(exc_info.value)

    @pytest.mark.parametrize('bad', [None, 42, ['/a', 3], [['/nested']]])
    def test_invalid_element(self, bad):
        """Only strings and dicts are valid elements."""
        with pytest.raises(UsageError, match='returned an invalid value'):
            normalize_prerender_result(bad, SOURCE)

    def test_missing_url(self):
        """A dict element needs a url."""
        with pytest.raises(UsageError, match='`url` is missing'):
            normalize_prerender_result({'page_context': {}}, SOURCE)

    def test_url_not_string(self):
        """The url of a dict element must be a string."""
        with pytest.raises(UsageError, match='should be a string'):
            normalize_prerender_result({'url': 7}, SOURCE)

    def test_unknown_key(self):
        """Keys other than url and page_context are rejected."""
        with pytest.raises(UsageError, match='unexpected key `title`'):
            normalize_prerender_result({'url': '/a', 'title': 'A'}, SOURCE)

    @pytest.mark.parametrize('page_context', [[1, 2], 'text', 3])
    def test_page_context_must_be_dict(self, page_context):
        """page_context must be a dict when present."""
        with pytest.raises(UsageError, match='invalid `page_context`'):
            normalize_prerender_result({'url': '/a', 'page_context': page_context}, SOURCE)


class TestNormalizeBeforePrerenderResult:
    """Test cases for normalize_before_prerender_result."""

    @pytest.mark.parametrize('result', [None, {}])
    def test_nothing_returned(self, result):
        """No return value means no addendum."""
        assert normalize_before_prerender_result(result, SOURCE) == {}

    def test_global_context_returned(self):
        """The global_context record is returned as the addendum."""
        addendum = normalize_before_prerender_result({'global_context': {'lang': 'en'}}, SOURCE)
        assert addendum == {'lang': 'en'}

    @pytest.mark.parametrize('result', [['x'], 'x', {'other': 1}, {'global_context': {}, 'extra': 1}])
    def test_invalid_shape(self, result):
        """Anything but {'global_context': ...} is rejected."""
        with pytest.raises(UsageError, match='should return `None`'):
            normalize_before_prerender_result(result, SOURCE)

    def test_global_context_not_dict(self):
        """global_context must itself be a dict."""
        with pytest.raises(UsageError, match='should be a dict'):
            normalize_before_prerender_result({'global_context': ['x']}, SOURCE)


class TestCallHook:
    """Test cases for call_hook."""

    def test_sync_hook(self):
        assert asyncio.run(call_hook(lambda a: a + 1, 1)) == 2

    def test_async_hook(self):
        async def hook(a):
            await asyncio.sleep(0)
            return a * 3

        assert asyncio.run(call_hook(hook, 2)) == 6
