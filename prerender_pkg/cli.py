#!/usr/bin/env python3
"""
Command-line interface for the prerenderer.
"""

import os
import sys
import argparse
import asyncio
import time
from typing import Dict

from . import __version__
from .errors import PrerenderError, warn_once
from .pipeline import Prerenderer, prerender as _prerender
from .settings import PrerenderSettings

STARTER_PAGES: Dict[str, str] = {
    'pages/_default.page.html': """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <title>{{ title or 'My Site' }}</title>
</head>
<body>
    {{ content }}
</body>
</html>
""",
    'pages/index.page.html': """<!DOCTYPE html>
<html lang="en">
<head><meta charset="UTF-8"><title>Home</title></head>
<body>
    <h1>Welcome</h1>
    <ul>
        <li><a href="/about">About</a></li>
        <li><a href="/product/1">First product</a></li>
    </ul>
</body>
</html>
""",
    'pages/about.page.md': """# About

This page is written in Markdown and wrapped by `_default.page.html`.
""",
    'pages/product.page.route.py': """route = '/product/@id'
""",
    'pages/product.page.server.py': """PRODUCTS = {
    '1': {'name': 'First product'},
    '2': {'name': 'Second product'},
}


def prerender():
    return [
        {'url': f'/product/{product_id}', 'page_context': {'product': product}}
        for product_id, product in PRODUCTS.items()
    ]
""",
    'pages/product.page.html': """<!DOCTYPE html>
<html lang="en">
<head><meta charset="UTF-8"><title>{{ product.name }}</title></head>
<body><h1>{{ product.name }}</h1></body>
</html>
""",
    'pages/_error.page.html': """<!DOCTYPE html>
<html lang="en">
<head><meta charset="UTF-8"><title>Page not found</title></head>
<body><h1>404</h1><p>This page could not be found.</p></body>
</html>
""",
}


def create_starter_structure() -> None:
    """Create a starter pages directory next to the configuration file."""
    current_dir = os.getcwd()

    for rel_path, content in STARTER_PAGES.items():
        file_path = os.path.join(current_dir, *rel_path.split('/'))
        if os.path.exists(file_path):
            print(f"Page file already exists: {rel_path}")
            continue
        os.makedirs(os.path.dirname(file_path), exist_ok=True)
        with open(file_path, 'w', encoding='utf-8') as f:
            f.write(content)
        print(f"Created page file: {rel_path}")


def prerender(*args, **kwargs):
    """Deprecated import location of :func:`prerender_pkg.pipeline.prerender`."""
    warn_once(
        "`from prerender_pkg.cli import prerender` is deprecated in favor of "
        "`from prerender_pkg import prerender`"
    )
    return _prerender(*args, **kwargs)


def main() -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(description='Prerenderer - render every page to static HTML')
    parser.add_argument('--config', type=str,
                        help='Path to prerender.yml (defaults to a lookup in the current directory)')
    parser.add_argument('--pages', type=str,
                        help='Directory containing page files')
    parser.add_argument('--out-dir', type=str,
                        help='Output directory, documents are written to <out-dir>/client/')
    parser.add_argument('--parallel', type=int,
                        help='Maximum number of hooks, renders and writes in flight')
    parser.add_argument('--partial', action='store_true', default=None,
                        help='Do not warn about pages that were not pre-rendered')
    parser.add_argument('--no-extra-dir', action='store_true', default=None,
                        help='Write /about as about.html instead of about/index.html')
    parser.add_argument('--client-router', action='store_true', default=None,
                        help='Also write .pageContext.json files')
    parser.add_argument('--init', type=str, choices=['yml', 'yaml', 'json'],
                        help='Create a sample configuration file and starter pages')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')

    args = parser.parse_args()

    # Handle init command
    if args.init:
        settings_loader = PrerenderSettings()
        config_path = settings_loader.create_sample_config(args.init)
        print(f"Created sample configuration file: {config_path}")

        print("\nCreating starter pages...")
        create_starter_structure()

        print("\nRun 'prerender' to pre-render your pages.")
        return

    overall_start_time = time.time()

    try:
        # Load settings from configuration file
        settings_loader = PrerenderSettings(config_file=args.config)
        settings_loader.load_settings()

        # Command line arguments take precedence
        args_dict = {k: v for k, v in vars(args).items() if v is not None}
        final_settings = settings_loader.merge_with_args(args_dict)

        prerenderer = Prerenderer(**final_settings)
        asyncio.run(prerenderer.run())
    except PrerenderError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    total_time = time.time() - overall_start_time
    prerenderer.logger.info(f"Pre-rendering completed in {total_time:.6f} seconds.")


if __name__ == '__main__':
    main()
