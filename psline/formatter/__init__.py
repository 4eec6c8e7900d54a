"""
Template language for psline.

Provides the format string compiler, the style parser and the renderer.
"""

from .ast import Format, Group, Text, VariableRef, variables
from .compiler import FormatSyntaxError, compile_cached, compile_format, serialize
from .renderer import ModuleBinding, Renderer, Segment, plain_text, serialize_segments
from .style import StyleSpec, paint, parse_style

__all__ = [
    "Format",
    "Group",
    "Text",
    "VariableRef",
    "variables",
    "FormatSyntaxError",
    "compile_cached",
    "compile_format",
    "serialize",
    "ModuleBinding",
    "Renderer",
    "Segment",
    "plain_text",
    "serialize_segments",
    "StyleSpec",
    "paint",
    "parse_style",
]
