"""Markdown to HTML conversion."""

import html
import re

import mistune

# Directive bodies must survive conversion untouched, but mistune escapes
# quotes and ampersands in paragraph text.
DIRECTIVE_SPAN = re.compile(r'\{\{.*?\}\}', re.DOTALL)


class MarkdownConverter:
    """Stateless Markdown converter; safe to call re-entrantly."""

    def __init__(self):
        self.markdown_parser = self.create_markdown_parser()

    def create_markdown_parser(self):
        """Create a Mistune markdown parser with a custom renderer."""
        class CustomRenderer(mistune.HTMLRenderer):
            def __init__(self):
                super().__init__(escape=False)
            def block_code(self, code, info=None):
                escaped_code = mistune.escape(code)
                return '<pre style="white-space: pre-wrap;"><code>{}</code></pre>'.format(escaped_code)
        return mistune.create_markdown(
            renderer=CustomRenderer(),
            plugins=['table', 'task_lists', 'strikethrough']
        )

    def convert(self, text):
        converted = self.markdown_parser(text)
        return DIRECTIVE_SPAN.sub(lambda match: html.unescape(match.group(0)), converted)

    __call__ = convert
