import os
import time
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import List
from xml.sax.saxutils import escape

import csscompressor
import rjsmin

from .composer import Composer, INCLUDE_DIRECTORY
from .converter import MarkdownConverter
from .fileio import IgnoreList, copy_file, read_text, write_text_if_changed
from .links import rewrite_links
from .variables import VariableStack

DEFAULT_OUTPUT_DIRECTORY = '_public'
ASSETS_DIRECTORY = 'assets'
ROOT_FILES_DIRECTORY = 'rootfiles'
VARIABLES_FILE = 'variables.txt'
IGNORE_FILE = 'ignore.txt'
NO_ROBOTS_FILE = 'norobots.txt'
SITE_URL_VARIABLE = 'site.url'

# Category directory -> extensions of the root pages it holds.
ROOT_DIRECTORIES = (
    ('html', ('.html',)),
    ('pages', ('.html',)),
    ('markdown', ('.md',)),
)
SKIPPED_DIRECTORIES = (INCLUDE_DIRECTORY, ASSETS_DIRECTORY)


@dataclass
class BuildReport:
    pages_generated: int = 0
    pages_written: int = 0
    pages_failed: int = 0
    files_copied: int = 0
    assets_minified: int = 0
    urls: List[str] = field(default_factory=list)


class InfoFilter(logging.Filter):
    """Filter to allow only selected INFO messages to be shown in the console."""
    def filter(self, record):
        if record.levelno >= logging.WARNING:
            return True
        allowed_messages = [
            "Site build completed in",
            "Pages generated:",
            "Pages written:",
            "Files copied:",
            "Generating XML sitemap",
            "Generating robots.txt",
            "Skipping sitemap",
            "Change detected",
            "Watching",
            "Serving site at",
            "Server stopped",
        ]
        return any(msg in record.getMessage() for msg in allowed_messages)


class InkSite:
    """Builds the output site from an input directory of pages, includes and layouts."""

    def __init__(self, input_dir, output_dir=None, include_debug=False, sitemap=True, minify=False,
                 log_dir='logs', converter=None):
        self.input_dir = input_dir
        self.output_dir = output_dir or os.path.join(input_dir, DEFAULT_OUTPUT_DIRECTORY)
        self.include_debug = include_debug
        self.sitemap = sitemap
        self.minify = minify
        self.converter = converter or MarkdownConverter()
        self._generate_lock = threading.Lock()

        self.setup_logging(log_dir)

    def setup_logging(self, log_dir='logs'):
        """Set up logging configuration."""
        self.logger = logging.getLogger('InkSite')
        self.logger.setLevel(logging.DEBUG)

        if not self.logger.handlers:
            # Console handler with filter
            console_handler = logging.StreamHandler()
            console_handler.setLevel(logging.INFO)
            console_handler.addFilter(InfoFilter())
            console_formatter = logging.Formatter('%(message)s')
            console_handler.setFormatter(console_formatter)
            self.logger.addHandler(console_handler)

            # File handler for all logs
            if log_dir:
                os.makedirs(log_dir, exist_ok=True)
                log_filename = datetime.now().strftime('inksite_%Y-%m-%d_%H-%M-%S.log')
                file_handler = logging.FileHandler(os.path.join(log_dir, log_filename))
                file_handler.setLevel(logging.DEBUG)
                file_formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
                file_handler.setFormatter(file_formatter)
                self.logger.addHandler(file_handler)

    def generate(self):
        """Run one full regeneration pass. Passes never overlap."""
        with self._generate_lock:
            return self._generate()

    def _generate(self):
        start_time = time.time()
        report = BuildReport()

        variables = VariableStack()
        variables.load_initial(os.path.join(self.input_dir, VARIABLES_FILE))
        ignore_list = IgnoreList().load(os.path.join(self.input_dir, IGNORE_FILE))
        composer = Composer(self.input_dir, converter=self.converter, include_debug=self.include_debug)

        os.makedirs(self.output_dir, exist_ok=True)

        for category_dir, files in self.root_files():
            for path in files:
                self.build_page(path, category_dir, composer, variables, report)

        if self.sitemap:
            site_url = variables.lookup(SITE_URL_VARIABLE)
            if site_url:
                self.generate_xml_sitemap(report.urls, site_url)
                self.generate_robots_txt(site_url)
            else:
                self.logger.info(f"Skipping sitemap and robots.txt (no $({SITE_URL_VARIABLE}) variable).")

        self.copy_assets(ignore_list, report)
        self.copy_root_files(ignore_list, report)
        if self.minify:
            self.minify_assets(report)

        self.logger.info(f"Site build completed in {time.time() - start_time:.6f} seconds.")
        self.logger.info(f"Pages generated: {report.pages_generated}")
        self.logger.info(f"Pages written: {report.pages_written}")
        self.logger.info(f"Files copied: {report.files_copied}")
        return report

    def root_files(self):
        """Yield ``(category_dir, [root page paths])`` for each existing category."""
        for directory, extensions in ROOT_DIRECTORIES:
            category_dir = os.path.join(self.input_dir, directory)
            if os.path.isdir(category_dir):
                yield category_dir, self.enumerate_root_files(category_dir, extensions)

    def enumerate_root_files(self, directory, extensions):
        """Root pages in *directory*, then in its subdirectories, recursively.

        ``include`` and ``assets`` subdirectories are skipped.
        """
        entries = sorted(os.listdir(directory))
        files = [
            os.path.join(directory, name) for name in entries
            if name.lower().endswith(extensions) and os.path.isfile(os.path.join(directory, name))
        ]
        for name in entries:
            path = os.path.join(directory, name)
            if os.path.isdir(path) and name.lower() not in SKIPPED_DIRECTORIES:
                files.extend(self.enumerate_root_files(path, extensions))
        return files

    def build_page(self, path, category_dir, composer, variables, report):
        """Compose one root page and write it if its content changed."""
        relative_dir = os.path.relpath(os.path.dirname(path), category_dir)
        relative_dir = '' if relative_dir == '.' else relative_dir.replace(os.sep, '/')
        output_name = os.path.splitext(os.path.basename(path))[0] + '.html'
        depth = len(relative_dir.split('/')) if relative_dir else 0
        url = f'{relative_dir}/{output_name}' if relative_dir else output_name

        # Variables set by the page stay local to it.
        variables.push()
        try:
            html = composer.compose_root(path, variables)
            html = rewrite_links(html, depth)
            report.pages_generated += 1

            if not os.path.exists(os.path.join(os.path.dirname(path), NO_ROBOTS_FILE)):
                report.urls.append(url)

            output_path = os.path.join(self.output_dir, relative_dir, output_name)
            if write_text_if_changed(output_path, html):
                report.pages_written += 1
                self.logger.debug(f"Generated HTML: {output_path}")
        except (IOError, OSError, PermissionError) as e:
            report.pages_failed += 1
            self.logger.error(f"Failed to write page for {path}: {e}")
        except Exception as e:
            report.pages_failed += 1
            self.logger.error(f"Error processing {path}: {e}")
        finally:
            variables.pop()

    def generate_xml_sitemap(self, urls, site_url):
        """Generate XML sitemap."""
        base_url = site_url.rstrip('/')
        sitemap_content = '<?xml version="1.0" encoding="UTF-8"?>\n'
        sitemap_content += '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">\n'
        for url in urls:
            sitemap_content += f'<url><loc>{escape(f"{base_url}/{url}")}</loc></url>\n'
        sitemap_content += '</urlset>\n'

        sitemap_file = os.path.join(self.output_dir, 'sitemap.xml')
        try:
            write_text_if_changed(sitemap_file, sitemap_content)
            self.logger.info("Generating XML sitemap")
        except (IOError, OSError, PermissionError) as e:
            self.logger.error(f"Failed to write sitemap file {sitemap_file}: {e}")
            return False

        return True

    def generate_robots_txt(self, site_url):
        """Generate robots.txt file."""
        robots_content = """User-agent: *
Allow: /

Sitemap: {}/sitemap.xml
""".format(site_url.rstrip('/'))

        robots_file = os.path.join(self.output_dir, 'robots.txt')
        try:
            write_text_if_changed(robots_file, robots_content)
            self.logger.info("Generating robots.txt")
        except (IOError, OSError, PermissionError) as e:
            self.logger.error(f"Failed to write robots.txt file {robots_file}: {e}")
            return False

        return True

    def asset_directories(self):
        """The root ``assets`` directory plus any nested under category directories."""
        directories = [os.path.join(self.input_dir, ASSETS_DIRECTORY)]
        for directory, _ in ROOT_DIRECTORIES:
            category_dir = os.path.join(self.input_dir, directory)
            if not os.path.isdir(category_dir):
                continue
            for dirpath, dirnames, _ in os.walk(category_dir):
                dirnames.sort()
                for name in list(dirnames):
                    if name.lower() == ASSETS_DIRECTORY:
                        directories.append(os.path.join(dirpath, name))
                        dirnames.remove(name)
        return [d for d in directories if os.path.isdir(d)]

    def copy_assets(self, ignore_list, report):
        """Copy every assets tree into ``<output>/assets``."""
        destination_root = os.path.join(self.output_dir, ASSETS_DIRECTORY)
        for source_root in self.asset_directories():
            for dirpath, dirnames, filenames in os.walk(source_root):
                dirnames[:] = sorted(
                    d for d in dirnames if not ignore_list.is_ignored(os.path.join(dirpath, d))
                )
                for filename in sorted(filenames):
                    source = os.path.join(dirpath, filename)
                    destination = os.path.join(destination_root, os.path.relpath(source, source_root))
                    try:
                        if copy_file(source, destination, ignore_list):
                            report.files_copied += 1
                    except (IOError, OSError, PermissionError) as e:
                        self.logger.error(f"Failed to copy asset {source}: {e}")

    def copy_root_files(self, ignore_list, report):
        """Copy the top-level files of ``rootfiles`` into the output root."""
        root_files_dir = os.path.join(self.input_dir, ROOT_FILES_DIRECTORY)
        if not os.path.isdir(root_files_dir):
            return
        for filename in sorted(os.listdir(root_files_dir)):
            source = os.path.join(root_files_dir, filename)
            if not os.path.isfile(source):
                continue
            try:
                if copy_file(source, os.path.join(self.output_dir, filename), ignore_list):
                    report.files_copied += 1
            except (IOError, OSError, PermissionError) as e:
                self.logger.error(f"Failed to copy root file {source}: {e}")

    def minify_assets(self, report):
        """Write ``.min.css`` / ``.min.js`` siblings for copied CSS and JS assets."""
        assets_output_dir = os.path.join(self.output_dir, ASSETS_DIRECTORY)
        if not os.path.isdir(assets_output_dir):
            return

        for dirpath, _, filenames in os.walk(assets_output_dir):
            for file in filenames:
                if file.endswith('.css') and not file.endswith('.min.css'):
                    minifier, minified_name = csscompressor.compress, file[:-len('.css')] + '.min.css'
                elif file.endswith('.js') and not file.endswith('.min.js'):
                    minifier, minified_name = rjsmin.jsmin, file[:-len('.js')] + '.min.js'
                else:
                    continue

                source_path = os.path.join(dirpath, file)
                try:
                    minified = minifier(read_text(source_path))
                    if write_text_if_changed(os.path.join(dirpath, minified_name), minified):
                        report.assets_minified += 1
                        self.logger.debug(f"Minified: {file}")
                except (IOError, OSError, PermissionError) as e:
                    self.logger.error(f"Failed to minify {file}: {e}")
