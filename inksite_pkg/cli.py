#!/usr/bin/env python3
"""
Command-line interface for InkSite - directive-driven static site generator.
"""

import os
import sys
import time
import argparse
from typing import List, Optional

from . import __version__
from .core import InkSite
from .server import serve
from .settings import InkSiteSettings
from .watcher import RegenerationQueue, RegenerationWorker, start_watching

STARTER_FILES = {
    'variables.txt': """$(site.name) = "My InkSite"
$(site.url) = "https://example.com"
""",
    'ignore.txt': r"""\.DS_Store$
\.psd$
""",
    os.path.join('layout', 'default.html'): """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <title>{{ $(title) }} | {{ $(site.name) }}</title>
    <link rel="stylesheet" href="assets/css/site.css">
    {{ head }}
</head>
<body>
    {{ include header.html }}
    <main>
        {{ content }}
    </main>
    <footer>&copy; {{ $(date) = "yyyy" }} {{ site.name }}</footer>
</body>
</html>
""",
    os.path.join('include', 'header.html'): """<header>
    <a href="index.html">Home</a>
    <a href="about.html">About</a>
</header>
""",
    os.path.join('pages', 'index.html'): """{{ layout default.html $(title) = "Home" }}
{{ section head }}
<meta name="description" content="Welcome to {{ $(site.name) }}">
{{ endsection }}
<h1>Welcome</h1>
<p>This page was composed by InkSite.</p>
{{ section markdown }}
Edit `pages/index.html` or add Markdown pages under `markdown/`.
{{ endsection }}
""",
    os.path.join('markdown', 'about.md'): """{{ $(title) = "About" }}

# About this site

Markdown pages use the first layout in `layout/` unless they ask for another.
""",
    os.path.join('assets', 'css', 'site.css'): """body {
    font-family: sans-serif;
    margin: 0 auto;
    max-width: 48rem;
}
""",
}


def create_starter_structure(input_dir: str) -> None:
    """Create a starter site with a layout, an include, pages and assets."""
    for relative_path, content in STARTER_FILES.items():
        path = os.path.join(input_dir, relative_path)
        if os.path.exists(path):
            print(f"File already exists: {relative_path}")
            continue
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            f.write(content)
        print(f"Created: {relative_path}")

    print("\n✅ Starter structure created successfully!")
    print("\nNext steps:")
    print("1. Set $(site.url) in variables.txt")
    print("2. Edit the layout in 'layout/' and shared parts in 'include/'")
    print("3. Add pages to 'pages/' or 'html/' and Markdown to 'markdown/'")
    print("4. Run 'inksite --serve --watch' while you work")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='InkSite - Directive-driven Static Site Generator')
    parser.add_argument('input', nargs='?', default='.',
                        help='Site input directory (default: current directory)')
    parser.add_argument('--output', type=str,
                        help='Output directory (default: <input>/_public)')
    parser.add_argument('--watch', action='store_true', default=None,
                        help='Regenerate the site when input files change')
    parser.add_argument('--serve', action='store_true', default=None,
                        help='Serve the output directory over HTTP')
    parser.add_argument('--port', type=int,
                        help='Port for --serve (default: 5001)')
    parser.add_argument('--include-debug', dest='include_debug', action='store_true', default=None,
                        help='Expand include-debug directives')
    parser.add_argument('--no-sitemap', dest='sitemap', action='store_false', default=None,
                        help='Do not write sitemap.xml and robots.txt')
    parser.add_argument('--minify', action='store_true', default=None,
                        help='Write minified copies of CSS and JS assets')
    parser.add_argument('--log-dir', dest='log_dir', type=str,
                        help='Directory for build log files')
    parser.add_argument('--init', type=str, choices=['yml', 'yaml', 'json'],
                        help='Create a sample configuration file and starter site')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    return parser


def resolve_output_dir(input_dir: str, output: Optional[str]) -> Optional[str]:
    if not output:
        return None
    output = os.path.expanduser(output)
    if not os.path.isabs(output):
        output = os.path.join(input_dir, output)
    return output


def watch_and_serve(generator: InkSite, input_dir: str, settings: dict) -> None:
    """Run the change watcher and/or development server until interrupted."""
    observer = worker = None

    if settings['watch']:
        queue = RegenerationQueue()
        worker = RegenerationWorker(queue, generator.generate)
        worker.start()
        ignored = [generator.output_dir]
        if settings.get('log_dir'):
            ignored.append(os.path.abspath(settings['log_dir']))
        observer = start_watching(input_dir, queue, ignored_dirs=ignored)

    try:
        if settings['serve']:
            # This is a blocking call!
            serve(generator.output_dir, port=settings['port'])
        else:
            while True:
                time.sleep(1)
    except KeyboardInterrupt:
        pass
    finally:
        if observer is not None:
            observer.stop()
            observer.join()
        if worker is not None:
            worker.stop()
            worker.join()


def main(argv: Optional[List[str]] = None) -> None:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    input_dir = os.path.abspath(args.input)

    # Handle init command
    if args.init:
        os.makedirs(input_dir, exist_ok=True)
        settings_loader = InkSiteSettings(input_dir)
        config_path = settings_loader.create_sample_config(args.init)
        print(f"Created sample configuration file: {config_path}")

        print("\nCreating starter project structure...")
        create_starter_structure(input_dir)
        return

    # Load settings from configuration file
    settings_loader = InkSiteSettings(input_dir)
    settings_loader.load_settings()

    # Command line arguments take precedence
    args_dict = {k: v for k, v in vars(args).items() if v is not None and k not in ('input', 'init')}
    final_settings = settings_loader.merge_with_args(args_dict)

    try:
        generator = InkSite(
            input_dir=input_dir,
            output_dir=resolve_output_dir(input_dir, final_settings['output']),
            include_debug=final_settings['include_debug'],
            sitemap=final_settings['sitemap'],
            minify=final_settings['minify'],
            log_dir=final_settings['log_dir'],
        )
        generator.generate()
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    if final_settings['watch'] or final_settings['serve']:
        watch_and_serve(generator, input_dir, final_settings)


if __name__ == '__main__':
    main()
