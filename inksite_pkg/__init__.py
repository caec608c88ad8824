"""
InkSite - A directive-driven static site generator.

InkSite composes HTML and Markdown pages from shared includes and layouts
using a small directive language (``{{ include header.html }}``,
``{{ section sidebar }}``, ``$(variables)``) and writes a static site tree,
re-writing only pages whose output changed, plus a sitemap.
"""

__version__ = "1.0.0"

from .composer import Composer, CompositionContext, ContentSection
from .core import InkSite, BuildReport
from .variables import VariableStack

__all__ = ['InkSite', 'BuildReport', 'Composer', 'CompositionContext', 'ContentSection', 'VariableStack']
