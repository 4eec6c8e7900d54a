"""
Property-based tests for the concurrent module scheduler.
"""

import threading
import time
from pathlib import Path

import allure
from hypothesis import given, settings, strategies as st

from psline.config import PromptConfig
from psline.context import Context
from psline.modules.base import Detection, ModuleDescriptor, ModuleResult
from psline.scheduler import Scheduler, run_bounded


# Probes in these tests never look at the context
CONTEXT = Context(cwd=Path("."), logical_cwd=Path("."), home=Path("."))


def module(name, probe, timeout=None) -> ModuleDescriptor:
    return ModuleDescriptor(
        name=name,
        description=name,
        probe=probe,
        detection=Detection(always_on=True),
        timeout=timeout,
    )


def quick(value):
    return lambda context, options: ModuleResult.of(value=value)


# **Feature: scheduler, Property 1: A hung probe is abandoned at its deadline**
@allure.feature("Scheduler")
@allure.story("A hung probe is abandoned at its deadline")
@allure.severity(allure.severity_level.CRITICAL)
def test_blocking_probe_times_out_without_delaying_siblings(make_context):
    """
    Property 1: A hung probe is abandoned at its deadline

    A probe that blocks forever yields the absent result after about its
    timeout; sibling probes still deliver their values.
    """
    release = threading.Event()

    def blocking(context, options):
        release.wait(10)
        return ModuleResult.of(value="late")

    modules = [
        module("slow", blocking, timeout=100),
        module("fast", quick("fast")),
        module("other", quick("other")),
    ]

    started = time.perf_counter()
    results = Scheduler(PromptConfig(command_timeout=1000)).evaluate(modules, make_context())
    elapsed = time.perf_counter() - started
    release.set()

    assert results["slow"].is_empty
    assert results["fast"].get("value") == "fast"
    assert results["other"].get("value") == "other"
    assert elapsed < 1.0, f"Scheduler waited {elapsed:.2f}s for a 100ms timeout"


# **Feature: scheduler, Property 2: Probe failures become absence**
@allure.feature("Scheduler")
@allure.story("Probe failures become absence")
@allure.severity(allure.severity_level.CRITICAL)
@settings(max_examples=50)
@given(names=st.lists(
    st.text(alphabet=st.sampled_from("abcdefgh"), min_size=1, max_size=6),
    min_size=1,
    max_size=6,
    unique=True,
))
def test_failing_probes_are_absent(names: list[str]):
    """
    Property 2: Probe failures become absence

    Raising, returning None or returning the wrong type never propagates;
    the module is reported absent and the others are unaffected.
    """
    def raising(context, options):
        raise RuntimeError("boom")

    def wrong_type(context, options):
        return "not a result"

    broken = [raising, lambda context, options: None, wrong_type]
    modules = []
    for index, name in enumerate(names):
        probe = broken[index % 3] if index % 2 else quick(name)
        modules.append(module(name, probe))

    outcomes = Scheduler(PromptConfig()).evaluate_timed(modules, context=CONTEXT)

    assert [outcome.name for outcome in outcomes] == names
    for index, outcome in enumerate(outcomes):
        if index % 2:
            assert outcome.result.is_empty
        else:
            assert outcome.result.get("value") == names[index]


def test_error_is_reported_in_outcome():
    """Test that a raising probe records its error for the timings view."""
    def raising(context, options):
        raise ValueError("bad output")

    outcome = Scheduler(PromptConfig()).evaluate_timed([module("m", raising)], context=CONTEXT)[0]

    assert outcome.error is not None
    assert "bad output" in outcome.error
    assert not outcome.timed_out


def test_module_timeout_option_overrides_default(make_context):
    """Test that a per-module timeout from config bounds the probe."""
    release = threading.Event()

    def blocking(context, options):
        release.wait(10)
        return ModuleResult.of(value="late")

    config = PromptConfig.from_dict({"command_timeout": 5000, "slow": {"timeout": 50}})
    started = time.perf_counter()
    outcome = Scheduler(config).evaluate_timed([module("slow", blocking)], make_context())[0]
    release.set()

    assert outcome.timed_out
    assert time.perf_counter() - started < 2


def test_probes_run_concurrently():
    """Test that probes overlap instead of running one after another."""
    barrier = threading.Barrier(3, timeout=2)

    def waiting(context, options):
        barrier.wait()
        return ModuleResult.of(value="ok")

    modules = [module(f"m{i}", waiting) for i in range(3)]
    results = Scheduler(PromptConfig(command_timeout=3000)).evaluate(modules, context=CONTEXT)

    assert all(result.get("value") == "ok" for result in results.values())


def test_run_bounded_preserves_order_and_values():
    """Test the generic bounded runner."""
    outcomes = run_bounded({
        "b": (lambda: 2, 1000),
        "a": (lambda: 1, 1000),
    })

    assert list(outcomes) == ["b", "a"]
    assert outcomes["a"].value == 1
    assert outcomes["b"].ok


def test_probe_commands_share_the_module_timeout(make_context, fake_runner):
    """Test that commands run by a probe are bounded by that module's timeout."""
    fake_runner.responses = {"tool --version": (0, "1.0"), "tool status": (0, "ok")}

    def probe(context, options):
        context.exec_cmd("tool", "--version")
        context.run_shell("tool status")
        return ModuleResult.of(value="ok")

    config = PromptConfig.from_dict({"command_timeout": 2500, "narrowed": {"timeout": 1200}})
    Scheduler(config).evaluate(
        [module("global_timeout", probe), module("narrowed", probe), module("own_timeout", probe, timeout=800)],
        make_context(runner=fake_runner),
    )

    assert sorted(fake_runner.timeouts) == [800, 800, 1200, 1200, 2500, 2500]


def test_explicit_command_timeout_wins_over_the_module_budget(make_context, fake_runner):
    fake_runner.responses = {"tool": (0, "")}

    def probe(context, options):
        context.exec_cmd("tool", timeout_ms=100)
        return ModuleResult.of(value="ok")

    Scheduler(PromptConfig()).evaluate([module("m", probe)], make_context(runner=fake_runner))

    assert fake_runner.timeouts == [100]
