from __future__ import annotations

import asyncio
import json
import random

import typer
from rich.console import Console
from rich.table import Table

from volume_sentiment.core.config import Settings
from volume_sentiment.core.logging import configure_logging
from volume_sentiment.core.time_utils import now_ms
from volume_sentiment.pipeline.session import DashboardView, SentimentSession
from volume_sentiment.sources.synthetic import RandomSnapshotSource

app = typer.Typer(help="Rolling trade-volume sentiment from a live venue feed")
console = Console()

_WINDOW_LABELS = {30: "30s", 120: "2m", 300: "5m"}


def _format_diff(value: float) -> str:
    if not value:
        return "(0)"
    sign = "+" if value > 0 else ""
    return f"({sign}{value:.2f}%)"


def _dashboard_table(view: DashboardView) -> Table:
    stale = " [yellow]stale[/yellow]" if view.data_stale else ""
    source = " [magenta]synthetic[/magenta]" if view.synthetic else ""
    table = Table(title=f"status={view.status.value}{stale}{source}")
    table.add_column("window")
    table.add_column("avg price", justify="right")
    table.add_column("min", justify="right")
    table.add_column("max", justify="right")
    table.add_column("buy vol", justify="right")
    table.add_column("sell vol", justify="right")
    table.add_column("buy %", justify="right")
    table.add_column("filled %", justify="right")

    ten = view.ten_seconds
    table.add_row(
        "10s",
        f"{ten.avg_price:.2f} {_format_diff(view.price_drift_10s_vs_30s)}",
        f"{ten.min_price:.2f}",
        f"{ten.max_price:.2f}",
        f"{ten.buy_volume_total:.1f}",
        f"{ten.sell_volume_total:.1f}",
        f"{view.buy_trades_10s}/{view.sell_trades_10s} trades",
        "",
    )
    for item in view.windows:
        metrics = item.metrics
        table.add_row(
            _WINDOW_LABELS.get(int(item.window), str(int(item.window))),
            f"{metrics.avg_price:.2f}",
            f"{metrics.min_price:.2f}",
            f"{metrics.max_price:.2f}",
            f"{metrics.buy_volume_total:.1f}",
            f"{metrics.sell_volume_total:.1f}",
            f"{item.buy_percent:.1f}",
            f"{item.completeness:.0f}",
        )
    return table


def _render(session: SentimentSession) -> None:
    view = session.dashboard(session.current_ms)
    console.print(_dashboard_table(view))
    if view.exchanges:
        venues = ", ".join(
            f"{rollup.name} {rollup.total_volume:.1f} @ {rollup.last_price:.2f} "
            f"{_format_diff(rollup.diff_from_global_avg_percent)}"
            for rollup in view.exchanges
        )
        console.print(f"venues: {venues}")
    if view.connection_error:
        console.print(f"[red]last error:[/red] {view.connection_error}")


async def _watch(settings: Settings, seconds: float | None) -> None:
    session = SentimentSession(settings, on_tick=_render)
    session.start()
    try:
        if seconds is None:
            await asyncio.Event().wait()
        else:
            await asyncio.sleep(seconds)
    finally:
        await session.stop()


@app.command("watch")
def watch(
    url: str | None = typer.Option(default=None, help="Websocket feed URL"),
    seconds: float | None = typer.Option(default=None, min=1, help="Stop after this many seconds"),
    debug: bool = typer.Option(default=False, help="Verbose connection logging"),
) -> None:
    settings = Settings()
    overrides: dict[str, object] = {}
    if url is not None:
        overrides["websocket_url"] = url
    if debug:
        overrides["debug"] = True
    if overrides:
        settings = settings.model_copy(update=overrides)
    configure_logging(settings.log_level)

    try:
        asyncio.run(_watch(settings, seconds))
    except KeyboardInterrupt:
        console.print("Shutdown requested.")


@app.command("synthetic")
def synthetic(
    count: int = typer.Option(default=5, min=1, help="Number of payloads to print"),
    seed: int | None = typer.Option(default=None, help="Seed for reproducible output"),
) -> None:
    """Print payloads from the fallback generator as JSON lines."""
    source = RandomSnapshotSource(rng=random.Random(seed))
    start = now_ms()
    for offset in range(count):
        console.print_json(json.dumps(source.next_payload(start + offset * 1000)))


if __name__ == "__main__":
    app()
