"""Read series from the local metrics table."""

import asyncio
import re
import time
from typing import Optional

import typer

from promduck.cli.output import print_json, print_table
from promduck.config import get_settings
from promduck.models import LabelMatcher, MatchType, Query, ReadRequest, TimeSeries
from promduck.storage import DuckDBWarehouse, StorageClient

_MATCHER_RE = re.compile(r"^\s*([^\s=!~\"\\]+)\s*(=~|!~|!=|=)(.*)$")

_OPERATORS = {
    "=": MatchType.EQ,
    "!=": MatchType.NEQ,
    "=~": MatchType.RE,
    "!~": MatchType.NRE,
}


def parse_matcher(text: str) -> LabelMatcher:
    """Parse ``name<op>value`` where op is one of ``=``, ``!=``, ``=~``, ``!~``.

    Surrounding double quotes on the value are dropped.
    """
    match = _MATCHER_RE.match(text)
    if not match:
        raise typer.BadParameter(f"Invalid matcher: {text!r} (expected name=value)")

    name, operator, value = match.groups()
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] == '"':
        value = value[1:-1]
    return LabelMatcher(name=name, value=value, type=_OPERATORS[operator])


def _series_row(series: TimeSeries) -> dict:
    labels = series.label_dict()
    name = labels.pop("__name__", "")
    selector = ", ".join(f'{k}="{v}"' for k, v in labels.items())
    samples = series.samples
    return {
        "series": f"{name}{{{selector}}}",
        "samples": len(samples),
        "first_ms": samples[0].timestamp_ms if samples else "",
        "last_ms": samples[-1].timestamp_ms if samples else "",
        "last_value": samples[-1].value if samples else "",
    }


def read(
    match: list[str] = typer.Option(
        ...,
        "--match",
        "-m",
        help="Label matcher, e.g. __name__=up or job=~\"api.*\" (repeatable)",
    ),
    start: Optional[int] = typer.Option(
        None, "--start", help="Start timestamp in ms (default: end - 1h)"
    ),
    end: Optional[int] = typer.Option(None, "--end", help="End timestamp in ms (default: now)"),
    output: str = typer.Option("table", "--output", "-o", help="Output format: table, json"),
) -> None:
    """Run one remote-read query against the metrics table.

    Examples:
        promduck read -m __name__=up

        promduck read -m __name__=http_requests_total -m 'code!=200' -o json
    """
    if output not in ("table", "json"):
        raise typer.BadParameter(f"Invalid output format: {output}", param_hint="--output")

    matchers = [parse_matcher(m) for m in match]
    end_ms = end if end is not None else int(time.time() * 1000)
    start_ms = start if start is not None else end_ms - 3600 * 1000

    settings = get_settings()
    request = ReadRequest(queries=[Query(start_ms, end_ms, matchers)])

    async def _read():
        warehouse = DuckDBWarehouse.from_settings(settings)
        client = StorageClient(
            warehouse,
            timeout_seconds=settings.remote_timeout_seconds,
            table_name=settings.table_name,
        )
        try:
            await warehouse.initialize(create_schema=False)
            return await client.read(request)
        finally:
            await client.close()

    response = asyncio.run(_read())
    series = response.results[0].timeseries

    if output == "json":
        print_json(
            [
                {
                    "labels": s.label_dict(),
                    "samples": [[p.timestamp_ms, p.value] for p in s.samples],
                }
                for s in series
            ]
        )
    else:
        print_table([_series_row(s) for s in series], title=f"{len(series)} series")
