"""
Consistency checks between rendered pages, excluded pages and the page inventory.
"""

from typing import Dict, List

from .errors import UsageError, warn_once
from .models import ExclusionEntry
from .pages import is_error_page


def check_contradictions(prerendered_page_ids: Dict[str, dict], exclusions: List[ExclusionEntry]) -> None:
    """Raise if a page is both rendered and marked ``do_not_prerender``."""
    excluded = {entry.page_id: entry for entry in exclusions}
    for page_id, page_context in prerendered_page_ids.items():
        hit = excluded.get(page_id)
        if hit is None:
            continue
        raise UsageError(
            f"Your `prerender()` hook defined in {page_context.get('_prerender_source_file')} returns the URL "
            f"`{page_context.get('url')}` which matches the page with "
            f"`{hit.page_server_file_path}#do_not_prerender == True`. This is contradictory: either do not set "
            f"`do_not_prerender` or remove the URL from the list of URLs to be pre-rendered."
        )


def warn_missing_pages(all_page_ids: List[str], prerendered_page_ids: Dict[str, dict],
                       exclusions: List[ExclusionEntry], partial: bool) -> List[str]:
    """
    Warn about every page that was neither rendered nor excluded.

    Error pages are never reported. Returns the missing page ids, whether
    or not the warning was suppressed by ``partial``.
    """
    excluded = {entry.page_id for entry in exclusions}
    missing = [
        page_id for page_id in all_page_ids
        if page_id not in prerendered_page_ids
        and page_id not in excluded
        and not is_error_page(page_id)
    ]
    if not partial:
        for page_id in missing:
            warn_once(
                f"Could not pre-render page `{page_id}.page.*` because it has a non-static route, and no "
                f"`prerender()` hook returned (an) URL(s) matching the page's route. Either use a "
                f"`prerender()` hook to pre-render the page, or use the `partial` option to suppress this warning."
            )
    return missing
