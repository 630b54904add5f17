"""BDD step definitions for exporter features."""

import logging
from collections.abc import Iterator

import pytest
from pytest_bdd import given, parsers, then, when
from tests.features.exporter.steps_helpers import ExporterScenarioContext

from dmexporter.adapters.logging import NoticeHandler
from dmexporter.core.config import EngineConfig
from dmexporter.core.errors import ConnectivityError
from dmexporter.probes import queries


@pytest.fixture
def ctx() -> Iterator[ExporterScenarioContext]:
    """Fresh scenario context with notices captured for each test."""
    context = ExporterScenarioContext()
    handler = NoticeHandler(context.notices, level=logging.DEBUG)
    logger = logging.getLogger("dmexporter")
    previous_level = logger.level
    logger.setLevel(logging.DEBUG)
    logger.addHandler(handler)
    yield context
    logger.removeHandler(handler)
    logger.setLevel(previous_level)


# === Background Steps ===
@given("a fake DM connection")
def step_fake_connection(ctx: ExporterScenarioContext) -> None:
    ctx.connection.calls.clear()


@given(parsers.parse('a cache TTL of "{ttl}"'))
def step_cache_ttl(ctx: ExporterScenarioContext, ttl: str) -> None:
    ctx.config = EngineConfig.from_mapping({"cache_ttl": ttl})


# === Capability Steps ===
@given(parsers.parse('the view "{view}" does not exist'))
def step_view_absent(ctx: ExporterScenarioContext, view: str) -> None:
    ctx.connection.script_view(view, present=False)


@given(parsers.parse('the view "{view}" exists'))
def step_view_present(ctx: ExporterScenarioContext, view: str) -> None:
    ctx.connection.script_view(view)


@given(parsers.parse("the monitor view returns {n:d} row"))
def step_monitor_rows(ctx: ExporterScenarioContext, n: int) -> None:
    row = ("2024-01-01 00:00:00", "TRUE", "1", "10.0.0.1", "V8", 1)
    ctx.connection.script(queries.MONITOR_INFO, rows=[row] * n)


# === Version Steps ===
@given("the detailed version query fails with a connection error")
def step_version_detail_fails(ctx: ExporterScenarioContext) -> None:
    ctx.connection.script(
        queries.VERSION_DETAIL, error=ConnectivityError("connection reset by peer")
    )


@given("the instance has no BUILD_VERSION column")
def step_no_build_version(ctx: ExporterScenarioContext) -> None:
    ctx.connection.script(queries.VERSION_BUILD_POSITION, rows=[(0,)])


@given(parsers.parse('the version banner reads "{banner}"'))
def step_version_banner(ctx: ExporterScenarioContext, banner: str) -> None:
    ctx.connection.script(queries.VERSION_BANNER, rows=[(banner,)])


# === Cache Steps ===
@given(parsers.parse("the tablespace query returns {n:d} tablespaces"))
def step_tablespace_rows(ctx: ExporterScenarioContext, n: int) -> None:
    rows = [(f"TS{i}", 1024 * (i + 1), 512) for i in range(n)]
    ctx.connection.script(queries.TABLESPACE_INFO, rows=rows)


# === Actions ===
@when(
    parsers.re(r"the (?P<probe>\w+) probe collects (?P<n>\d+) times?"),
    converters={"n": int},
)
def when_probe_collects(ctx: ExporterScenarioContext, probe: str, n: int) -> None:
    for _ in range(n):
        ctx.collect(probe)


@when(parsers.parse("the {probe} probe collects again"))
def when_probe_collects_again(ctx: ExporterScenarioContext, probe: str) -> None:
    ctx.collect(probe)


@when(parsers.re(r"(?P<n>\d+) minutes? pass(es)?"), converters={"n": int})
def when_minutes_pass(ctx: ExporterScenarioContext, n: int) -> None:
    ctx.clock.advance(n * 60)


# === Outcomes ===
@then(parsers.parse("{n:d} samples are emitted"))
def then_samples_emitted(ctx: ExporterScenarioContext, n: int) -> None:
    assert sum(len(cycle) for cycle in ctx.cycles) == n


@then(
    parsers.re(r'the view "(?P<view>[^"]+)" was checked (?P<n>\d+) times?'),
    converters={"n": int},
)
def then_view_checked(ctx: ExporterScenarioContext, view: str, n: int) -> None:
    assert ctx.connection.count(f"NAME = '{view}'") == n


@then("no ERROR notices were logged")
def then_no_errors(ctx: ExporterScenarioContext) -> None:
    assert ctx.notices_at("ERROR") == []
    assert ctx.notices_at("INFO") != []


@then(parsers.parse('the "{label}" label is "{value}"'))
def then_label_is(ctx: ExporterScenarioContext, label: str, value: str) -> None:
    assert ctx.cycles[-1][0].labels[label] == value


@then("both cycles emitted identical samples")
def then_identical_cycles(ctx: ExporterScenarioContext) -> None:
    first, second = ctx.cycles
    assert first
    assert first == second


@then(
    parsers.re(r"the tablespace query ran (?P<n>\d+) times?"), converters={"n": int}
)
def then_tablespace_queries(ctx: ExporterScenarioContext, n: int) -> None:
    assert ctx.connection.count(queries.TABLESPACE_INFO) == n
