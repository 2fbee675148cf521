"""
Prerenderer - render every page of a site to static HTML ahead of time.

Pages declare hooks that contribute URLs and data; the pipeline routes each
URL to its page, renders it with bounded parallelism and writes one document
(plus an optional serialized page context) per URL.
"""

__version__ = "1.0.0"

from .errors import PrerenderError, UsageError, HookError
from .pipeline import Prerenderer, prerender, run_prerender

__all__ = ['Prerenderer', 'prerender', 'run_prerender', 'PrerenderError', 'UsageError', 'HookError']
