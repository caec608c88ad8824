"""
Tokenizer and matcher for the directive language.

A directive is the text between ``{{`` and ``}}``. Its body is split into
tokens:

* ``var``    ``$(name)`` standing on its own
* ``string`` a single- or double-quoted literal (quotes removed)
* ``op``     one of ``=``, ``==``, ``?``, ``:``
* ``word``   any other run of non-space characters, e.g. ``include`` or
             ``$(lang)/header.html``

Quoted text may contain the closing marker and the other quote character.
"""

import re
from collections import namedtuple
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .errors import CompositionError

OPENER = '{{'
CLOSER = '}}'
VARIABLE_PREFIX = '$('
VARIABLE_SUFFIX = ')'
QUOTES = ('"', "'")

Token = namedtuple('Token', 'kind value')
Span = namedtuple('Span', 'start end body')

# $(name) anywhere inside a larger string, e.g. a file name.
VARIABLE_REFERENCE = re.compile(r'\$\((?P<name>[^)]*)\)')


class DirectiveSyntaxError(CompositionError):
    kind = 'DirectiveSyntaxError'


def _read_variable(text, index):
    """Return the index just past the ``)`` closing a ``$(`` at *index*."""
    end = text.find(VARIABLE_SUFFIX, index + len(VARIABLE_PREFIX))
    if end == -1:
        return len(text)
    return end + 1


def tokenize(body: str) -> List[Token]:
    tokens = []
    index = 0
    length = len(body)

    while index < length:
        char = body[index]

        if char.isspace():
            index += 1
            continue

        if char in QUOTES:
            end = body.find(char, index + 1)
            if end == -1:
                raise DirectiveSyntaxError(f'Unterminated string in "{body.strip()}"')
            tokens.append(Token('string', body[index + 1:end]))
            index = end + 1
            continue

        if body.startswith('==', index):
            tokens.append(Token('op', '=='))
            index += 2
            continue

        if char == '=':
            tokens.append(Token('op', '='))
            index += 1
            continue

        start = index
        while index < length:
            char = body[index]
            if char.isspace() or char in QUOTES or char == '=':
                break
            if body.startswith(VARIABLE_PREFIX, index):
                index = _read_variable(body, index)
                continue
            index += 1

        run = body[start:index]
        if run in ('?', ':'):
            tokens.append(Token('op', run))
        elif run.startswith(VARIABLE_PREFIX) and run.endswith(VARIABLE_SUFFIX) \
                and VARIABLE_SUFFIX not in run[len(VARIABLE_PREFIX):-1]:
            tokens.append(Token('var', run[len(VARIABLE_PREFIX):-1].strip()))
        else:
            tokens.append(Token('word', run))

    return tokens


@dataclass
class Directive:
    """A parsed directive body."""

    body: str
    tokens: List[Token]
    arguments: List[str] = field(default_factory=list)
    assignments: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def command(self) -> str:
        if not self.tokens:
            return ''
        first = self.tokens[0]
        if first.kind == 'var':
            return VARIABLE_PREFIX + first.value + VARIABLE_SUFFIX
        return first.value

    @property
    def is_variable(self) -> bool:
        return bool(self.tokens) and self.tokens[0].kind == 'var'


def parse(body: str) -> Directive:
    """Tokenize a directive body and split it into arguments and assignments.

    ``$(name) = "value"`` triples become assignments; every other token after
    the command becomes a positional argument (strings keep no quotes).
    """
    tokens = tokenize(body)
    directive = Directive(body=body.strip(), tokens=tokens)

    index = 1
    while index < len(tokens):
        window = tokens[index:index + 3]
        if len(window) == 3 and window[0].kind == 'var' \
                and window[1] == Token('op', '=') and window[2].kind == 'string':
            directive.assignments.append((window[0].value, window[2].value))
            index += 3
            continue
        token = tokens[index]
        if token.kind == 'var':
            directive.arguments.append(VARIABLE_PREFIX + token.value + VARIABLE_SUFFIX)
        else:
            directive.arguments.append(token.value)
        index += 1

    return directive


def _find_closer(line, index):
    """Return the index of the closer matching an opener ending at *index*.

    Quoted strings are skipped so a closer inside quotes does not end the
    directive. Returns -1 when there is none.
    """
    quote = None
    while index < len(line):
        char = line[index]
        if quote:
            if char == quote:
                quote = None
        elif char in QUOTES:
            quote = char
        elif line.startswith(CLOSER, index):
            return index
        index += 1
    return -1


def scan(line: str) -> List[Span]:
    """Return the spans of every complete directive in *line*, in order."""
    spans = []
    position = 0
    while True:
        start = line.find(OPENER, position)
        if start == -1:
            break
        body_start = start + len(OPENER)
        end = _find_closer(line, body_start)
        if end == -1:
            # A quote inside an unterminated directive must not hide a later
            # plain closer, so fall back to the first closer in sight.
            end = line.find(CLOSER, body_start)
            if end == -1:
                break
        spans.append(Span(start, end + len(CLOSER), line[body_start:end]))
        position = end + len(CLOSER)
    return spans


def is_unclosed(line: str) -> bool:
    """True when *line* opens a directive that has no closer yet."""
    position = 0
    for span in scan(line):
        position = span.end
    return line.find(OPENER, position) != -1


def parse_assignment(text: str, bare_names: bool = False) -> Optional[Tuple[str, str]]:
    """Parse ``$(name) = "value"`` (or ``name = "value"`` with *bare_names*).

    Returns ``(name, value)`` or ``None`` when *text* is not an assignment.
    Anything after the closing quote is ignored.
    """
    try:
        tokens = tokenize(text)
    except DirectiveSyntaxError:
        return None
    if len(tokens) < 3 or tokens[1] != Token('op', '=') or tokens[2].kind != 'string':
        return None
    name = tokens[0]
    if name.kind == 'var':
        return name.value, tokens[2].value
    if bare_names and name.kind == 'word':
        return name.value, tokens[2].value
    return None


def match_ternary(directive: Directive) -> Optional[Tuple[str, str, str, str]]:
    """Match ``$(name) == "check" ? "yes" : "no"``.

    Returns ``(name, check, true_value, false_value)`` or ``None``.
    """
    tokens = directive.tokens
    if len(tokens) != 7:
        return None
    shape = [token.kind if token.kind != 'op' else token.value for token in tokens]
    if shape != ['var', '==', 'string', '?', 'string', ':', 'string']:
        return None
    return tokens[0].value, tokens[2].value, tokens[4].value, tokens[6].value


def match_assignment(directive: Directive) -> Optional[Tuple[str, str]]:
    tokens = directive.tokens
    if len(tokens) == 3 and tokens[0].kind == 'var' \
            and tokens[1] == Token('op', '=') and tokens[2].kind == 'string':
        return tokens[0].value, tokens[2].value
    return None
