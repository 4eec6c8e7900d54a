"""
Property-based tests for template rendering.
"""

from types import MappingProxyType

import allure
from hypothesis import given, settings, strategies as st
from rich.text import Text as RichText

from psline.formatter import (
    ModuleBinding,
    Renderer,
    compile_format,
    plain_text,
)
from psline.formatter.compiler import escape


def binding(name: str, template: str, styles=None, meta=None, **variables) -> ModuleBinding:
    return ModuleBinding(
        name=name,
        format=compile_format(template),
        variables=MappingProxyType(variables),
        styles=MappingProxyType(styles or {}),
        meta=MappingProxyType(meta or {}),
    )


def render_plain(template: str, bindings=None, scope=None, **kwargs) -> str:
    renderer = Renderer(bindings or {}, **kwargs)
    return plain_text(renderer.render_segments(compile_format(template), scope))


region_values = st.one_of(
    st.none(),
    st.text(alphabet=st.sampled_from("abcdefghijklmnopqrstuvwxyz-0123456789"), min_size=1, max_size=12),
)


# **Feature: renderer, Property 1: Conditional groups follow their variables**
@allure.feature("Renderer")
@allure.story("Conditional groups follow their variables")
@allure.severity(allure.severity_level.CRITICAL)
@settings(max_examples=100)
@given(region=region_values)
def test_conditional_group_with_region(region):
    """
    Property 1: Conditional groups follow their variables

    ``(@$region)`` renders ``""`` when ``region`` is absent and
    ``"@<region>"`` otherwise.
    """
    scope = binding("aws", "(@$region)", region=region)
    output = render_plain("(@$region)", scope=scope)

    assert output == ("" if region is None else f"@{region}")


# **Feature: renderer, Property 2: All-absent rendering keeps outer literals**
@allure.feature("Renderer")
@allure.story("All-absent rendering keeps outer literals")
@allure.severity(allure.severity_level.CRITICAL)
@settings(max_examples=100)
@given(
    before=st.text(alphabet=st.sampled_from("abc :>"), max_size=8),
    inside=st.text(alphabet=st.sampled_from("xyz @"), max_size=8),
    after=st.text(alphabet=st.sampled_from("abc :>"), max_size=8),
)
def test_all_absent_keeps_only_literals_outside_groups(before: str, inside: str, after: str):
    """
    Property 2: All-absent rendering keeps outer literals

    With every variable absent, top-level literal text survives and groups
    containing variables disappear.
    """
    template = f"{escape(before)}[{escape(inside)}$a](red)({escape(inside)}$b){escape(after)}$c"
    assert render_plain(template) == before + after


# **Feature: renderer, Property 3: Literal-only groups always render**
@allure.feature("Renderer")
@allure.story("Literal-only groups always render")
@allure.severity(allure.severity_level.NORMAL)
@settings(max_examples=100)
@given(text=st.text(alphabet=st.sampled_from("abc xyz@:"), min_size=1, max_size=10))
def test_literal_only_groups_render(text: str):
    """
    Property 3: Literal-only groups always render

    A group without variable references is never suppressed.
    """
    assert render_plain(f"({escape(text)})") == text
    assert render_plain(f"[{escape(text)}](bold)") == text


@allure.feature("Renderer")
@allure.story("Nested style composition")
@allure.severity(allure.severity_level.CRITICAL)
def test_nested_styles_compose():
    """Test that ``[a [b](red) c](green)`` renders b red inside green."""
    renderer = Renderer({})
    segments = renderer.render_segments(compile_format("[a [b](red) c](green)"))

    assert plain_text(segments) == "a b c"
    styles = {segment.text: segment.style.fg for segment in segments}
    assert styles == {"a ": "green", "b": "red", " c": "green"}

    painted = renderer.render(compile_format("[a [b](red) c](green)"))
    assert RichText.from_ansi(painted).plain == "a b c"
    red_start = painted.index("b")
    # The inner text is preceded by a red SGR sequence, not a bare reset
    assert "31" in painted[:red_start].rsplit("\x1b[", 1)[-1]


def test_reset_style_clears_outer_style():
    """Test that an empty inner style drops the outer attributes."""
    segments = Renderer({}).render_segments(compile_format("[a [b]() c](bold green)"))
    by_text = {segment.text: segment.style for segment in segments}

    assert by_text["b"].is_plain
    assert by_text["a "].bold


def test_partially_present_group_renders():
    """Test that one present variable keeps the group and drops the absent ones silently."""
    scope = binding("m", "", a="x", b=None)
    assert render_plain("($a-$b)", scope=scope) == "x-"


def test_empty_string_counts_as_present():
    """Test that an empty value is present, unlike None."""
    scope = binding("m", "", a="")
    assert render_plain("(<$a>)", scope=scope) == "<>"


def test_style_template_variables_resolve_from_scope():
    """Test ``$style`` lookup: probe styles, then meta, then variables."""
    scope = binding("character", "", styles={"style": "bold red"}, meta={"style": "green"}, symbol=">")
    segments = Renderer({}).render_segments(compile_format("[$symbol]($style)"), scope)

    assert segments[0].style.fg == "red"
    assert segments[0].style.bold


def test_variables_in_style_do_not_keep_group_alive():
    """Test that a group whose only variables sit in its style is still literal-only."""
    assert render_plain("[x]($missing)") == "x"


def test_module_expansion_and_absence():
    """Test that module references expand to the module's own template."""
    bindings = {
        "git_branch": binding("git_branch", "on [$branch](purple) ", branch="main"),
        "aws": binding("aws", "($region)", region=None),
    }

    assert render_plain("$git_branch$aws>", bindings) == "on main >"
    assert render_plain("($aws)[$git_branch](bold)", bindings) == "on main "
    assert render_plain("(via $aws)", bindings) == ""


def test_meta_variables_are_looked_up_after_own_variables():
    """Test lookup order within a module scope."""
    bindings = {
        "python": binding("python", "$symbol$version", meta={"symbol": "py "}, version="3.12"),
        "rust": binding("rust", "$symbol$version", meta={"symbol": "rs "}, symbol="own ", version="1.80"),
    }

    assert render_plain("$python", bindings) == "py 3.12"
    assert render_plain("$rust", bindings) == "own 1.80"


def test_all_expands_listed_modules_in_order():
    """Test ``$all`` at the top level."""
    bindings = {
        "a": binding("a", "A ", value="1"),
        "b": binding("b", "B ", value="1"),
        "c": binding("c", "C ", value=None),
    }

    output = render_plain("$all$character", bindings, all_modules=["b", "a", "c", "missing"])
    assert output == "B A "


def test_self_reference_is_not_expanded():
    """Test that a module referring to itself is cut off."""
    bindings = {"loop": binding("loop", "x$loop", value="1")}
    assert render_plain("$loop", bindings) == "x"


def test_mutual_cycle_terminates():
    """Test that a cycle through several modules terminates."""
    bindings = {
        "a": binding("a", "a$b", value="1"),
        "b": binding("b", "b$a", value="1"),
    }
    assert render_plain("$a", bindings) == "ab"


def test_expansion_depth_is_capped():
    """Test that expansion stops after max_depth levels."""
    bindings = {
        f"m{i}": binding(f"m{i}", f"{i}$m{i + 1}", value="1")
        for i in range(10)
    }

    assert render_plain("$m0", bindings, max_depth=4) == "0123"
    assert render_plain("$m0", bindings, max_depth=2) == "01"


def test_render_module_renders_one_binding():
    """Test rendering a module on its own."""
    renderer = Renderer({"jobs": binding("jobs", "[$symbol$number](blue)", symbol="*", number="3")})
    assert RichText.from_ansi(renderer.render_module("jobs")).plain == "*3"
    assert renderer.render_module("unknown") == ""
