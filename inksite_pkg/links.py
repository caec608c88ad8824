"""Fix up relative links in pages written below their category root."""

import re

PARENT = '../'

# href="page.html" / href='page.html'
RELATIVE_PAGE_LINK = re.compile(r'href\s*=\s*(?:"(?P<dq>\S+?)"|\'(?P<sq>\S+?)\')')
# "assets/site.css" / 'assets/site.css'
RELATIVE_ASSET_LINK = re.compile(r'"(?P<dq>assets/\S+?)"|\'(?P<sq>assets/\S+?)\'')


def _link_and_quote(match):
    if match.group('dq') is not None:
        return match.group('dq'), '"'
    return match.group('sq'), "'"


def rewrite_page_links(html, depth):
    """Prefix relative ``href`` values with ``depth`` parent references.

    Absolute URLs (containing ``://``) and fragments (``#...``) are left as
    they are. Backslashes are normalized to forward slashes.
    """
    prefix = PARENT * depth

    def replace(match):
        link, quote = _link_and_quote(match)
        if '://' in link or link.startswith('#'):
            return match.group(0)
        link = link.replace('\\', '/')
        return f'href={quote}{prefix}{link}{quote}'

    return RELATIVE_PAGE_LINK.sub(replace, html)


def rewrite_asset_links(html, depth):
    prefix = PARENT * depth

    def replace(match):
        link, quote = _link_and_quote(match)
        return f'{quote}{prefix}{link}{quote}'

    return RELATIVE_ASSET_LINK.sub(replace, html)


def rewrite_links(html, depth):
    """Rewrite relative links for a page ``depth`` directories deep.

    Hrefs are handled before other asset strings, otherwise
    ``href="assets/site.css"`` would be prefixed twice.
    """
    if depth <= 0:
        return html
    return rewrite_asset_links(rewrite_page_links(html, depth), depth)
