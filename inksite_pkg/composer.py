"""
Directive interpreter.

A page is composed line by line. Directives (``{{ ... }}``) are replaced by
the text they produce; includes and layouts recurse into further files. All
state that changes during a composition lives in the ``CompositionContext``
passed down each call and in a per-file ``_Activation``; the ``Composer``
itself only holds configuration, so one instance can compose any number of
pages.
"""

import html
import logging
import os
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterator, List, Optional, Tuple

from .converter import MarkdownConverter
from .directives import (
    VARIABLE_PREFIX,
    VARIABLE_REFERENCE,
    VARIABLE_SUFFIX,
    is_unclosed,
    match_assignment,
    match_ternary,
    parse,
    parse_assignment,
    scan,
)
from .errors import (
    CompositionError,
    CyclicInclude,
    IllegalSectionNesting,
    MissingArgument,
    ReservedSectionName,
    UnresolvedInclude,
)
from .fileio import read_text
from .resolver import resolve_path
from .variables import VariableStack

INCLUDE_DIRECTORY = 'include'
LAYOUT_DIRECTORY = 'layout'

MARKDOWN_EXTENSIONS = ('.md', '.markdown')
HTML_EXTENSIONS = ('.html', '.htm')

RESERVED_SECTION = 'content'
MARKDOWN_SECTION = 'markdown'

DEBUG_COMMANDS = ('debug-vars', 'dump-vars')
INCLUDE_COMMANDS = ('include', 'include-debug', 'includedebug', 'include-if', 'includeif')
SECTION_COMMANDS = ('section', 'endsection')
VERBATIM_START = 'verbatim'
VERBATIM_END = 'endverbatim'

ERROR_STYLE = ('background-color:#b53b95; color: white; padding:10px; '
               'border-radius: 5px; margin: 3px; font-family:monospace')

# Date format tokens such as yyyy-MM-dd, longest first.
DATE_TOKEN = re.compile(
    r"yyyy|yy|MMMM|MMM|MM|M|dddd|ddd|dd|d|HH|H|hh|h|mm|m|ss|s|tt|\\.|'[^']*'"
)
DATE_FIELDS = {
    'yyyy': lambda d: f'{d.year:04d}',
    'yy': lambda d: f'{d.year % 100:02d}',
    'MMMM': lambda d: d.strftime('%B'),
    'MMM': lambda d: d.strftime('%b'),
    'MM': lambda d: f'{d.month:02d}',
    'M': lambda d: str(d.month),
    'dddd': lambda d: d.strftime('%A'),
    'ddd': lambda d: d.strftime('%a'),
    'dd': lambda d: f'{d.day:02d}',
    'd': lambda d: str(d.day),
    'HH': lambda d: f'{d.hour:02d}',
    'H': lambda d: str(d.hour),
    'hh': lambda d: f'{d.hour % 12 or 12:02d}',
    'h': lambda d: str(d.hour % 12 or 12),
    'mm': lambda d: f'{d.minute:02d}',
    'm': lambda d: str(d.minute),
    'ss': lambda d: f'{d.second:02d}',
    's': lambda d: str(d.second),
    'tt': lambda d: 'AM' if d.hour < 12 else 'PM',
}


def format_date(fmt, when):
    """Render *when* using a date format such as ``yyyy-MM-dd``.

    Formats containing ``%`` are handed to ``strftime`` as they are.
    """
    if '%' in fmt:
        return when.strftime(fmt)

    def replace(match):
        token = match.group(0)
        if token.startswith('\\'):
            return token[1:]
        if token.startswith("'"):
            return token[1:-1]
        return DATE_FIELDS[token](when)

    return DATE_TOKEN.sub(replace, fmt)


def is_markdown(path):
    return path is not None and path.lower().endswith(MARKDOWN_EXTENSIONS)


def is_html(path):
    return path is not None and path.lower().endswith(HTML_EXTENSIONS)


def _chain_key(path):
    return os.path.normcase(os.path.abspath(path))


def _chomp(text):
    return text[:-1] if text.endswith('\n') else text


@dataclass(eq=False)
class ContentSection:
    name: str
    parts: List[str] = field(default_factory=list)

    def append(self, text):
        self.parts.append(text)

    @property
    def text(self):
        return ''.join(self.parts)


@dataclass
class CompositionContext:
    """Everything one file activation needs to know about where it sits.

    ``sections`` is shared by reference between a page, its includes and its
    layouts; ``chain`` lists the files currently open above this one.
    """

    file_path: Optional[str]
    root_path: str
    lines: Iterator[str]
    variables: VariableStack
    sections: List[ContentSection] = field(default_factory=list)
    chain: Tuple[str, ...] = ()

    @classmethod
    def for_text(cls, text, file_path, root_path, variables, sections=None, chain=()):
        if file_path is not None:
            chain = chain + (_chain_key(file_path),)
        return cls(
            file_path=file_path,
            root_path=root_path,
            lines=iter(text.splitlines()),
            variables=variables,
            sections=[] if sections is None else sections,
            chain=chain,
        )

    def derive(self, file_path, text):
        """Context for a nested file of the same page."""
        return CompositionContext.for_text(
            text, file_path, self.root_path, self.variables, self.sections, self.chain
        )

    def is_open(self, path):
        return _chain_key(path) in self.chain


class _Activation:
    """Mutable state of one pass over one file."""

    def __init__(self, context, allow_layout):
        self.context = context
        self.allow_layout = allow_layout
        self.output = []
        self.section = None
        self.layout = None
        self.layout_line = 0
        self.verbatim = False
        self.physical_line = 0
        self.line_number = 0

    def emit(self, text):
        target = self.section.parts if self.section is not None else self.output
        target.append(text + '\n')


class Composer:
    """Expands directives in pages, includes and layouts."""

    def __init__(self, input_dir, converter=None, include_debug=False, reader=read_text, clock=datetime.now):
        self.input_dir = input_dir
        self.converter = converter or MarkdownConverter()
        self.include_debug = include_debug
        self.reader = reader
        self.clock = clock
        self.logger = logging.getLogger('InkSite.Composer')

    @property
    def include_dir(self):
        return os.path.join(self.input_dir, INCLUDE_DIRECTORY)

    @property
    def layout_dir(self):
        return os.path.join(self.input_dir, LAYOUT_DIRECTORY)

    def compose_root(self, path, variables, text=None):
        """Compose a root page. Markdown sources are converted to HTML first."""
        self.logger.debug(f"Processing root file {path}")
        if text is None:
            text = self.reader(path)
        if is_markdown(path):
            text = self.converter(text)
        return self.compose(CompositionContext.for_text(text, path, path, variables))

    def compose(self, context, allow_layout=True):
        """Run one directive pass over ``context.lines`` and apply any layout."""
        self.logger.debug(f"    Processing file {context.file_path or 'embedded markdown'}")
        state = _Activation(context, allow_layout)

        if allow_layout and is_markdown(context.file_path):
            state.layout = self.default_layout()

        for raw in context.lines:
            state.physical_line += 1
            state.line_number = state.physical_line

            if state.verbatim and not self._has_marker(raw, VERBATIM_END):
                state.emit(raw)
                continue

            line = self._join_continuation(raw, state)

            if line.startswith(VARIABLE_PREFIX):
                assignment = parse_assignment(line)
                if assignment:
                    context.variables.define(*assignment)
                    continue

            self._expand_line(line, state)

        if state.section is not None:
            self.logger.debug(f"Section '{state.section.name}' left open at end of {context.file_path}")

        return self._finish(state)

    def default_layout(self):
        """First HTML file in the layout directory, in sorted order."""
        if not os.path.isdir(self.layout_dir):
            return None
        for name in sorted(os.listdir(self.layout_dir)):
            if is_html(name) and os.path.isfile(os.path.join(self.layout_dir, name)):
                return name
        return None

    def include_directories(self, context):
        directories = []
        if context.file_path is not None:
            directories.append(os.path.dirname(context.file_path))
            directories.append(os.path.join(os.path.dirname(context.root_path), INCLUDE_DIRECTORY))
        directories.append(self.include_dir)
        return directories

    def expand_references(self, text, variables):
        return VARIABLE_REFERENCE.sub(lambda match: variables.lookup(match.group('name').strip()), text)

    def evaluate_variable(self, directive, variables):
        """Evaluate a directive whose command is a ``$(name)`` token."""
        assignment = match_assignment(directive)
        if assignment:
            name, value = assignment
            if name == 'date':
                return format_date(value, self.clock())
            variables.define(name, value)
            return ''

        ternary = match_ternary(directive)
        if ternary:
            name, check, true_value, false_value = ternary
            return true_value if variables.lookup(name) == check else false_value

        return variables.lookup(directive.tokens[0].value)

    def _has_marker(self, line, marker):
        return any(span.body.strip() == marker for span in scan(line))

    def _join_continuation(self, line, state):
        while is_unclosed(line):
            continuation = next(state.context.lines, None)
            if continuation is None:
                break
            state.physical_line += 1
            line = line + '\n' + continuation
        return line

    def _expand_line(self, line, state):
        spans = scan(line)
        if not spans:
            state.emit(line)
            return

        fragments = []
        has_text = False
        position = 0

        for span in spans:
            literal = line[position:span.start]
            has_text = has_text or bool(literal.strip())
            fragments.append(literal)
            position = span.end

            try:
                directive = parse(span.body)
            except CompositionError as error:
                fragments.append(self._diagnostic(error, state))
                continue

            if directive.command in SECTION_COMMANDS:
                # Text before a section switch belongs to the previous target.
                self._flush(fragments, has_text, state)
                fragments = []
                has_text = False

            fragments.append(self._evaluate(directive, state))

        tail = line[position:]
        has_text = has_text or bool(tail.strip())
        fragments.append(tail)
        self._flush(fragments, has_text, state)

    def _flush(self, fragments, has_text, state):
        text = ''.join(fragments)
        if has_text or text.strip():
            state.emit(text)

    def _evaluate(self, directive, state):
        try:
            return self._dispatch(directive, state)
        except CompositionError as error:
            return self._diagnostic(error, state)

    def _dispatch(self, directive, state):
        command = directive.command
        variables = state.context.variables

        if directive.is_variable:
            return self.evaluate_variable(directive, variables)
        if command in DEBUG_COMMANDS:
            return self._render_debug(state)
        if command == 'layout':
            return self._request_layout(directive, state)
        if command == 'section':
            return self._open_section(directive, state)
        if command == 'endsection':
            return self._close_section(state)
        if command == VERBATIM_START:
            state.verbatim = True
            return ''
        if command == VERBATIM_END:
            state.verbatim = False
            return ''
        if command in INCLUDE_COMMANDS:
            return self._include(directive, state)
        return self._reference(command, state)

    def _render_debug(self, state):
        output = '<h5>Variables</h5><ul>' + state.context.variables.render_dump('<li>', '</li>') + '</ul>'
        if state.context.sections:
            output += '<h5>Sections</h5><ul>'
            output += ''.join(f'<li>{section.name}</li>' for section in state.context.sections)
            output += '</ul>'
        return output

    def _request_layout(self, directive, state):
        if not directive.arguments:
            raise MissingArgument('layout', 'a layout file name')
        state.layout = directive.arguments[0]
        state.layout_line = state.line_number
        for name, value in directive.assignments:
            state.context.variables.define(name, value)
        return ''

    def _open_section(self, directive, state):
        if not directive.arguments:
            raise MissingArgument('section', 'a section name')
        name = directive.arguments[0]
        if state.section is not None:
            raise IllegalSectionNesting(name, state.section.name)
        if name.lower() == RESERVED_SECTION:
            raise ReservedSectionName(name)
        state.section = ContentSection(name)
        state.context.sections.append(state.section)
        return ''

    def _close_section(self, state):
        section = state.section
        state.section = None
        if section is not None and section.name == MARKDOWN_SECTION:
            state.context.sections.remove(section)
            state.output.append(self._compose_embedded_markdown(section.text, state))
        return ''

    def _compose_embedded_markdown(self, text, state):
        context = CompositionContext.for_text(
            self.converter(text),
            None,
            state.context.root_path,
            state.context.variables,
            chain=state.context.chain,
        )
        result = self.compose(context, allow_layout=False)
        return result if result.endswith('\n') else result + '\n'

    def _include(self, directive, state):
        command = directive.command
        arguments = directive.arguments
        variables = state.context.variables

        if command in ('include-if', 'includeif'):
            if len(arguments) < 2:
                raise MissingArgument(command, 'a variable name and a file name')
            if not variables.lookup(self._variable_name(arguments[0])):
                return ''
            filename = arguments[1]
        else:
            if not arguments:
                raise MissingArgument(command, 'a file name')
            if command in ('include-debug', 'includedebug') and not self.include_debug:
                return ''
            filename = arguments[0]

        filename = self.expand_references(filename, variables).replace('\\', '/')
        result = resolve_path(self.include_directories(state.context), filename)
        if not result.found:
            raise UnresolvedInclude(result.requested, result.searched)
        if state.context.is_open(result.path):
            raise CyclicInclude(result.path, state.context.chain)

        with variables.scope():
            for name, value in directive.assignments:
                variables.define(name, value)
            return _chomp(self._render_include(result.path, state))

    def _render_include(self, path, state):
        text = self.reader(path)
        if is_markdown(path):
            return self.converter(text)
        if is_html(path):
            return self.compose(state.context.derive(path, text))
        return text

    def _reference(self, name, state):
        """Content of every section called *name*, else the variable *name*."""
        matches = [section for section in state.context.sections if section.name.lower() == name.lower()]
        if matches:
            return _chomp(''.join(section.text for section in matches))
        return state.context.variables.lookup(name)

    def _variable_name(self, token):
        if token.startswith(VARIABLE_PREFIX) and token.endswith(VARIABLE_SUFFIX):
            return token[len(VARIABLE_PREFIX):-len(VARIABLE_SUFFIX)].strip()
        return token

    def _finish(self, state):
        output = ''.join(state.output)
        if not state.allow_layout or state.layout is None:
            return output

        context = state.context
        name = self.expand_references(state.layout, context.variables).replace('\\', '/')
        result = resolve_path([self.layout_dir], name)
        try:
            if not result.found:
                raise UnresolvedInclude(result.requested, result.searched)
            if context.is_open(result.path):
                raise CyclicInclude(result.path, context.chain)
        except CompositionError as error:
            state.line_number = state.layout_line
            return output + self._diagnostic(error, state)

        # Each layout in a chain wraps the output of the one below it.
        context.sections[:] = [s for s in context.sections if s.name != RESERVED_SECTION]
        context.sections.append(ContentSection(RESERVED_SECTION, [output]))
        return self.compose(context.derive(result.path, self.reader(result.path)))

    def _diagnostic(self, error, state):
        file_path = state.context.file_path
        location = f'"{file_path}"' if file_path is not None else 'embedded markdown'
        self.logger.warning(f"{error.kind} in {location} on line {state.line_number}: {error.message}")
        return render_diagnostic(error, location, state.line_number)


def render_diagnostic(error, location, line_number):
    """HTML block shown in place of a directive that could not be evaluated."""
    details = ''
    if isinstance(error, UnresolvedInclude):
        details = '<div>Searched For: <ul>' + ''.join(
            f'<li>{html.escape(path, quote=False)}</li>' for path in error.searched
        ) + '</ul></div>'
    return (
        f"<div class='inksite-error' data-kind='{error.kind}' style='{ERROR_STYLE}'>"
        f"{html.escape(error.message, quote=False)}{details}"
        f"<div>In {html.escape(location, quote=False)} on line {line_number}.</div></div>"
    )
