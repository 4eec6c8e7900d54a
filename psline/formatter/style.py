"""
Style strings for psline templates.

A style string is a whitespace separated list of tokens such as
``"bold fg:#ff8800 bg:blue"``. Parsing never fails: unknown tokens are
skipped so that a config written for a richer terminal still renders.
Conversion to terminal escape sequences is delegated to Rich.
"""
import logging
from dataclasses import dataclass, replace
from functools import lru_cache
from typing import Optional

from rich.color import Color, ColorParseError, ColorSystem
from rich.style import Style

logger = logging.getLogger(__name__)


# Attribute keywords mapped to StyleSpec field names
ATTRIBUTE_KEYWORDS = {
    "bold": "bold",
    "italic": "italic",
    "underline": "underline",
    "dimmed": "dimmed",
    "inverted": "inverted",
    "blink": "blink",
    "strikethrough": "strikethrough",
}

# Names that differ between prompt configs and Rich's colour table
COLOR_ALIASES = {
    "purple": "magenta",
    "bright-purple": "bright_magenta",
}


@dataclass(frozen=True)
class StyleSpec:
    """Canonical description of how a span of text is styled.

    Attributes:
        bold, italic, underline, dimmed, inverted, blink, strikethrough:
            Boolean text attributes.
        fg: Foreground colour in Rich syntax (``red``, ``color(208)``,
            ``#ff8800``) or None.
        bg: Background colour in Rich syntax or None.
        reset: True when the style explicitly clears every attribute
            (an empty style string), as opposed to inheriting.
    """
    bold: bool = False
    italic: bool = False
    underline: bool = False
    dimmed: bool = False
    inverted: bool = False
    blink: bool = False
    strikethrough: bool = False
    fg: Optional[str] = None
    bg: Optional[str] = None
    reset: bool = False

    @property
    def is_plain(self) -> bool:
        """True if the spec carries no attribute and no colour."""
        return not (
            self.bold or self.italic or self.underline or self.dimmed
            or self.inverted or self.blink or self.strikethrough
            or self.fg or self.bg
        )

    def combine(self, child: "StyleSpec") -> "StyleSpec":
        """Compose a nested style inside this one.

        Fields set on ``child`` win. A reset child replaces this style
        entirely.

        Args:
            child: The style of the inner span.

        Returns:
            The effective style of the inner span.
        """
        if child.reset:
            return child
        return StyleSpec(
            bold=self.bold or child.bold,
            italic=self.italic or child.italic,
            underline=self.underline or child.underline,
            dimmed=self.dimmed or child.dimmed,
            inverted=self.inverted or child.inverted,
            blink=self.blink or child.blink,
            strikethrough=self.strikethrough or child.strikethrough,
            fg=child.fg or self.fg,
            bg=child.bg or self.bg,
        )

    def to_rich(self) -> Style:
        """Convert to a Rich Style."""
        if self.is_plain:
            return Style.null()
        return Style(
            color=self.fg,
            bgcolor=self.bg,
            bold=self.bold or None,
            dim=self.dimmed or None,
            italic=self.italic or None,
            underline=self.underline or None,
            blink=self.blink or None,
            reverse=self.inverted or None,
            strike=self.strikethrough or None,
        )

    def to_string(self) -> str:
        """Canonical style string that parses back to an equal spec."""
        tokens = [keyword for keyword, field_name in ATTRIBUTE_KEYWORDS.items()
                  if getattr(self, field_name)]
        if self.fg:
            tokens.append(f"fg:{_color_token(self.fg)}")
        if self.bg:
            tokens.append(f"bg:{_color_token(self.bg)}")
        return " ".join(tokens)


RESET = StyleSpec(reset=True)


def _color_token(color: str) -> str:
    if color.startswith("color(") and color.endswith(")"):
        return color[6:-1]
    return color


def parse_color(token: str) -> Optional[str]:
    """Normalise a colour token to Rich syntax.

    Accepts colour names (``red``, ``bright-blue``), ANSI indexes
    ``0``-``255`` and ``#rrggbb`` hex values.

    Args:
        token: The colour token, without any ``fg:``/``bg:`` prefix.

    Returns:
        The colour in Rich syntax, or None if the token is not a colour.
    """
    token = token.strip().lower()
    if not token or token == "none":
        return None

    if token.isdigit():
        index = int(token)
        return f"color({index})" if 0 <= index <= 255 else None

    name = COLOR_ALIASES.get(token, token)
    if name.startswith("bright-"):
        name = "bright_" + name[len("bright-"):]

    try:
        Color.parse(name)
    except ColorParseError:
        return None
    return name


@lru_cache(maxsize=512)
def parse_style(style: str) -> StyleSpec:
    """Parse a style string into a StyleSpec.

    Tokens are processed left to right so the last conflicting token wins.
    ``none`` clears everything seen before it. An empty string yields the
    explicit reset spec.

    Args:
        style: The style string, e.g. ``"bold italic fg:green bg:#202020"``.

    Returns:
        The parsed StyleSpec. Never raises.

    Example:
        >>> parse_style("bold red").fg
        'red'
    """
    tokens = style.split()
    if not tokens:
        return RESET

    spec = StyleSpec()
    for raw_token in tokens:
        token = raw_token.lower()

        if token in ATTRIBUTE_KEYWORDS:
            spec = replace(spec, **{ATTRIBUTE_KEYWORDS[token]: True})
            continue

        if token == "none":
            spec = StyleSpec()
            continue

        if token.startswith("fg:"):
            target, color_token = "fg", token[3:]
        elif token.startswith("bg:"):
            target, color_token = "bg", token[3:]
        else:
            target, color_token = "fg", token

        if color_token == "none":
            spec = replace(spec, **{target: None})
            continue

        color = parse_color(color_token)
        if color is None:
            logger.debug(f"Ignoring unknown style token: {raw_token!r}")
            continue
        spec = replace(spec, **{target: color})

    return spec


def paint(text: str, spec: Optional[StyleSpec]) -> str:
    """Wrap text in the SGR sequences for a style.

    Args:
        text: The text to style.
        spec: The style, or None for unstyled output.

    Returns:
        ``text`` surrounded by the escape sequence for ``spec`` and a
        trailing reset, or ``text`` unchanged when there is nothing to apply.
    """
    if not text or spec is None or spec.is_plain:
        return text
    return spec.to_rich().render(text, color_system=ColorSystem.TRUECOLOR)
