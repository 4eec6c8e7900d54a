"""
Format string compiler.

Turns a template such as ``"[$symbol$branch]($style) "`` into an AST of
:class:`Text`, :class:`VariableRef` and :class:`Group` nodes, and turns an
AST back into template text.

Grammar (informal)::

    format    := (text | variable | group)*
    variable  := "$" ident | "${" ident "}"
    group     := "[" format "]" "(" style ")"   styled, conditional
               | "(" format ")"                unstyled, conditional
    style     := (text | variable)*            no unescaped brackets

``$ \\ [ ] ( )`` are literal when preceded by a backslash. A ``$`` that is
not followed by an identifier character is literal.

Both directions use an explicit stack so that deeply nested user templates
cannot exhaust the interpreter stack.
"""
import re
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Optional, Union

from .ast import Format, Group, Text, VariableRef

METACHARACTERS = frozenset("$\\[]()")

_WHITESPACE_RUN = re.compile(r"\s+")


class FormatSyntaxError(ValueError):
    """Raised when a format string cannot be compiled."""

    def __init__(self, message: str, template: str, position: int):
        self.template = template
        self.position = position
        super().__init__(f"{message} (at position {position} in {template!r})")


def is_identifier_char(char: str) -> bool:
    """Whether ``char`` may appear in a variable name."""
    return char.isascii() and (char.isalnum() or char == "_")


def _read_variable(template: str, start: int) -> tuple[Optional[str], int]:
    """Read a variable reference starting at the ``$`` at ``start``.

    Returns:
        ``(name, next_index)``, or ``(None, start + 1)`` when the ``$`` is
        literal.

    Raises:
        FormatSyntaxError: For an unterminated or malformed ``${...}``.
    """
    length = len(template)
    if start + 1 < length and template[start + 1] == "{":
        close = template.find("}", start + 2)
        if close == -1:
            raise FormatSyntaxError("Unterminated variable reference", template, start)
        name = template[start + 2:close]
        if not name or not all(is_identifier_char(c) for c in name):
            raise FormatSyntaxError(f"Malformed variable name {name!r}", template, start)
        return name, close + 1

    end = start + 1
    while end < length and is_identifier_char(template[end]):
        end += 1
    if end == start + 1:
        return None, start + 1
    return template[start + 1:end], end


def _parse_style(template: str, start: int) -> tuple[tuple, int]:
    """Parse a style template that begins right after its opening ``(``.

    Returns:
        ``(parts, next_index)`` where ``next_index`` follows the closing ``)``.
    """
    parts: list[Union[Text, VariableRef]] = []
    buf: list[str] = []

    def flush() -> None:
        if buf:
            parts.append(Text(_WHITESPACE_RUN.sub(" ", "".join(buf))))
            buf.clear()

    i, length = start, len(template)
    while i < length:
        char = template[i]
        if char == "\\" and i + 1 < length and template[i + 1] in METACHARACTERS:
            buf.append(template[i + 1])
            i += 2
        elif char == "$":
            name, i_next = _read_variable(template, i)
            if name is None:
                buf.append("$")
            else:
                flush()
                parts.append(VariableRef(name))
            i = i_next
        elif char == ")":
            flush()
            return tuple(parts), i + 1
        elif char in "([]":
            raise FormatSyntaxError(f"Unexpected {char!r} in style string", template, i)
        else:
            buf.append(char)
            i += 1

    raise FormatSyntaxError("Unterminated style string", template, start - 1)


_ROOT = "root"
_STYLED = "styled"
_CONDITIONAL = "conditional"


@dataclass
class _Frame:
    kind: str
    position: int
    children: list = field(default_factory=list)


def compile_format(template: str) -> Format:
    """Compile a format string into an AST.

    Args:
        template: The format string.

    Returns:
        The root :class:`Format` node.

    Raises:
        FormatSyntaxError: On unmatched brackets or parentheses, a ``[...]``
            group without a style, or a malformed ``${...}`` reference.

    Example:
        >>> compile_format("(@$region)")
        Format(children=(Group(children=(Text(text='@'), VariableRef(name='region')), style=None),))
    """
    stack = [_Frame(_ROOT, 0)]
    buf: list[str] = []

    def flush() -> None:
        if buf:
            stack[-1].children.append(Text("".join(buf)))
            buf.clear()

    i, length = 0, len(template)
    while i < length:
        char = template[i]

        if char == "\\" and i + 1 < length and template[i + 1] in METACHARACTERS:
            buf.append(template[i + 1])
            i += 2

        elif char == "$":
            name, i_next = _read_variable(template, i)
            if name is None:
                buf.append("$")
            else:
                flush()
                stack[-1].children.append(VariableRef(name))
            i = i_next

        elif char == "[":
            flush()
            stack.append(_Frame(_STYLED, i))
            i += 1

        elif char == "(":
            flush()
            stack.append(_Frame(_CONDITIONAL, i))
            i += 1

        elif char == "]":
            if stack[-1].kind != _STYLED:
                raise FormatSyntaxError("Unmatched ']'", template, i)
            flush()
            frame = stack.pop()
            if i + 1 >= length or template[i + 1] != "(":
                raise FormatSyntaxError("Expected '(style)' after ']'", template, i + 1)
            style, i = _parse_style(template, i + 2)
            stack[-1].children.append(Group(tuple(frame.children), style))

        elif char == ")":
            if stack[-1].kind != _CONDITIONAL:
                raise FormatSyntaxError("Unmatched ')'", template, i)
            flush()
            frame = stack.pop()
            stack[-1].children.append(Group(tuple(frame.children), None))
            i += 1

        else:
            buf.append(char)
            i += 1

    flush()
    if len(stack) > 1:
        frame = stack[-1]
        opener = "[" if frame.kind == _STYLED else "("
        raise FormatSyntaxError(f"Unmatched {opener!r}", template, frame.position)

    return Format(tuple(stack[0].children))


@lru_cache(maxsize=256)
def compile_cached(template: str) -> Format:
    """Memoised :func:`compile_format`; templates are pure functions of their text."""
    return compile_format(template)


def escape(text: str) -> str:
    """Escape template metacharacters in literal text."""
    return "".join("\\" + c if c in METACHARACTERS else c for c in text)


def _serialize_variable(name: str, following: Optional[object]) -> str:
    if isinstance(following, Text) and following.text and is_identifier_char(following.text[0]):
        return "${" + name + "}"
    return "$" + name


def _serialize_parts(parts: tuple) -> str:
    out = []
    for index, part in enumerate(parts):
        if isinstance(part, Text):
            out.append(escape(part.text))
        else:
            following = parts[index + 1] if index + 1 < len(parts) else None
            out.append(_serialize_variable(part.name, following))
    return "".join(out)


def serialize(root: Union[Format, Group]) -> str:
    """Turn an AST back into template text.

    The output compiles to an AST equal to ``root``.
    """
    out: list[str] = []
    # Frames of (children, next index, closing text)
    stack: list[list] = [[root.children, 0, ""]]
    if isinstance(root, Group):
        out.append("[" if root.is_styled else "(")
        stack[0][2] = _group_closing(root)

    while stack:
        frame = stack[-1]
        children, index, closing = frame
        if index >= len(children):
            stack.pop()
            out.append(closing)
            continue
        frame[1] = index + 1
        node = children[index]

        if isinstance(node, Text):
            out.append(escape(node.text))
        elif isinstance(node, VariableRef):
            following = children[index + 1] if index + 1 < len(children) else None
            out.append(_serialize_variable(node.name, following))
        else:
            out.append("[" if node.is_styled else "(")
            stack.append([node.children, 0, _group_closing(node)])

    return "".join(out)


def _group_closing(group: Group) -> str:
    if group.style is None:
        return ")"
    return "](" + _serialize_parts(group.style) + ")"
