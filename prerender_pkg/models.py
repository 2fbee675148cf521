"""
Records produced while pre-rendering.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class ExclusionEntry:
    """A page whose server file sets ``do_not_prerender``."""
    page_id: str
    page_server_file_path: str


@dataclass
class RenderedDocument:
    url: str
    page_context: Dict[str, Any]
    document_html: str
    page_context_serialized: Optional[str]
    do_not_create_extra_directory: bool
    # None only for the static 404 fallback
    page_id: Optional[str]
