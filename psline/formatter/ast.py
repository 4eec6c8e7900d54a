"""
Abstract syntax tree for psline format strings.

All nodes are frozen so compiled templates can be cached and shared
between threads.
"""
from dataclasses import dataclass
from typing import Optional, Union


@dataclass(frozen=True)
class Text:
    """Literal text, already unescaped."""
    text: str


@dataclass(frozen=True)
class VariableRef:
    """A ``$name`` or ``${name}`` reference."""
    name: str


# Parts of a style string: literal tokens and ``$name`` references
StylePart = Union[Text, VariableRef]


@dataclass(frozen=True)
class Group:
    """A conditional group.

    ``[inner](style)`` carries a style template; ``(inner)`` has
    ``style=None`` and inherits the surrounding style. Either way the group
    renders nothing when every variable reachable inside it is absent.

    Attributes:
        children: Child nodes in source order.
        style: Style template parts, None for an unstyled group. An empty
            tuple is the explicit reset style ``[text]()``.
    """
    children: tuple
    style: Optional[tuple] = None

    @property
    def is_styled(self) -> bool:
        return self.style is not None


@dataclass(frozen=True)
class Format:
    """Root of a compiled template."""
    children: tuple


Node = Union[Text, VariableRef, Group]


def iter_nodes(root: Union[Format, Group]):
    """Yield every node below ``root`` in source order, without recursion.

    Variable references inside group style templates are included.
    """
    stack = [iter(root.children)]
    while stack:
        node = next(stack[-1], None)
        if node is None:
            stack.pop()
            continue
        yield node
        if isinstance(node, Group):
            if node.style:
                yield from node.style
            stack.append(iter(node.children))


def variables(root: Union[Format, Group]) -> list[str]:
    """List the distinct variable names referenced by a template, in order."""
    seen: dict[str, None] = {}
    for node in iter_nodes(root):
        if isinstance(node, VariableRef):
            seen.setdefault(node.name, None)
    return list(seen)
