"""
Calling user hooks and normalizing what they return.
"""

import inspect
from typing import Any, Dict, List, NamedTuple, Optional

from .errors import UsageError


class HookUrl(NamedTuple):
    """One URL contributed by a ``prerender()`` hook."""
    url: str
    page_context: Optional[Dict[str, Any]]


async def call_hook(fn, *args):
    """Call a sync or async hook and return its (awaited) result."""
    result = fn(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


def normalize_prerender_result(prerender_result: Any, prerender_source_file: str) -> List[HookUrl]:
    """
    Turn the value returned by a ``prerender()`` hook into a list of HookUrl.

    Args:
        prerender_result: A URL string, a ``{'url', 'page_context'}`` dict,
            or a list/tuple mixing both.
        prerender_source_file: File the hook lives in, used in error messages.

    Returns:
        The URLs in the order the hook returned them.

    Raises:
        UsageError: If any element has an unexpected shape.
    """
    if isinstance(prerender_result, (list, tuple)):
        elements = prerender_result
    else:
        elements = [prerender_result]
    return [_normalize_element(element, prerender_source_file) for element in elements]


def _normalize_element(element, prerender_source_file):
    err_msg1 = f"The `prerender()` hook defined in `{prerender_source_file}` returned an invalid value"
    err_msg2 = "Make sure your `prerender()` hook returns a dict `{'url': ..., 'page_context': ...}` or a list of such dicts."

    if isinstance(element, str):
        _check_url(element, err_msg1)
        return HookUrl(element, None)

    if not isinstance(element, dict):
        raise UsageError(f"{err_msg1}. {err_msg2}")
    if 'url' not in element:
        raise UsageError(f"{err_msg1}: `url` is missing. {err_msg2}")
    url = element['url']
    if not isinstance(url, str):
        raise UsageError(f"{err_msg1}: `url` should be a string (but we got `{type(url).__name__}`).")
    _check_url(url, err_msg1)
    for key in element:
        if key not in ('url', 'page_context'):
            raise UsageError(f"{err_msg1}: unexpected key `{key}`. {err_msg2}")

    page_context = element.get('page_context')
    if page_context is not None and not isinstance(page_context, dict):
        raise UsageError(
            f"The `prerender()` hook defined in `{prerender_source_file}` returned an invalid "
            f"`page_context` value: make sure `page_context` is a dict."
        )
    return HookUrl(url, page_context)


def _check_url(url, err_msg1):
    if not url.startswith('/'):
        raise UsageError(f"{err_msg1}: the URL `{url}` doesn't start with `/`. Make sure each URL starts with `/`.")


def normalize_before_prerender_result(result: Any, source_file: str) -> Dict[str, Any]:
    """
    Validate what ``on_before_prerender()`` returned.

    Returns the global context addendum, empty when the hook returned nothing.
    """
    if result is None or result == {}:
        return {}
    err_prefix = f"The `on_before_prerender()` hook exported by `{source_file}`"
    if not isinstance(result, dict) or set(result) != {'global_context'}:
        raise UsageError(f"{err_prefix} should return `None` or a dict `{{'global_context': {{...}}}}`.")
    addendum = result['global_context']
    if not isinstance(addendum, dict):
        raise UsageError(f"{err_prefix} returned `{{'global_context': ...}}` but `global_context` should be a dict.")
    return dict(addendum)
