import asyncio, logging, time
import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import (
    Progress, BarColumn, TextColumn, TimeElapsedColumn,
    MofNCompleteColumn, SpinnerColumn
)

from .adapters.csv_store import CsvRecordStore
from .adapters.parquet_export import export_parquet
from .adapters.rpc_httpx import DEFAULT_RPC_URL, UNIV2_FACTORY, FactoryEventSource, HttpxRPC
from .application.retry import RetryPolicy, RetryShell
from .application.use_cases import DEFAULT_STEP, ExtractionDriver
from .domain.errors import FatalError, PairfindError, RetriesExhaustedError
from .domain.models import ProgressState, ShellState

console = Console()

DEFAULT_OUT = "csvs/univ2lps.csv"


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )
    # per-request lines from httpx are noise at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Debug logging")
def cli(verbose):
    """pairfind: resumable PairCreated history extractor."""
    load_dotenv()
    _setup_logging(verbose)


@cli.command("scan")
@click.option("--rpc-url", envvar="RPC_URL", default=DEFAULT_RPC_URL, show_default=True, help="RPC endpoint URL")
@click.option("--factory", default=UNIV2_FACTORY, show_default=True, help="Pair factory address")
@click.option("--out", "out_path", default=DEFAULT_OUT, show_default=True, help="CSV record store")
@click.option("--step", type=click.IntRange(min=0), default=DEFAULT_STEP, show_default=True, help="Blocks per window")
@click.option("--genesis", type=click.IntRange(min=0), default=0, show_default=True, help="First block to scan on an empty store")
@click.option("--max-attempts", type=click.IntRange(min=1), default=None, help="Give up after N consecutive failed runs")
@click.option("--base-delay", type=float, default=1.0, show_default=True, help="First retry delay (s)")
@click.option("--max-delay", type=float, default=60.0, show_default=True, help="Retry delay ceiling (s)")
@click.option("--timeout", type=float, default=20.0, show_default=True, help="HTTP timeout (s)")
def scan_cmd(rpc_url, factory, out_path, step, genesis, max_attempts, base_delay, max_delay, timeout):
    """Discover every PairCreated event and append it to the CSV store, resuming where it left off."""

    async def run():
        rpc = HttpxRPC(rpc_url, timeout_s=timeout)
        store = CsvRecordStore(out_path, genesis_block=genesis)
        start = store.recover()

        progress = Progress(SpinnerColumn(),
                            TextColumn("[bold]pairs[/]"),
                            BarColumn(),
                            MofNCompleteColumn(),
                            TextColumn("•"),
                            TimeElapsedColumn(),
                            TextColumn(" • {task.description}"),
                            console=console,
                            transient=False,
                            expand=True,
                            )
        t0 = time.time()
        try:
            with progress:
                task = progress.add_task(description=f"block {start.next_block:,}",
                                         total=None, completed=start.found_count)

                def on_flush(state: ProgressState, target: int) -> None:
                    progress.update(task, total=target, completed=state.found_count,
                                    description=f"block {state.next_block:,}")

                def on_state(state: ShellState) -> None:
                    if state.phase == "retrying":
                        progress.update(task, description=f"retry {state.attempt} in {state.delay:.1f}s")

                driver = ExtractionDriver(FactoryEventSource(rpc, factory), store, step=step, on_flush=on_flush)
                shell = RetryShell(
                    driver,
                    RetryPolicy(max_attempts=max_attempts, base_delay=base_delay, max_delay=max_delay),
                    on_state=on_state,
                )
                report = await shell.run()
        finally:
            await rpc.aclose()

        console.print(f"[bold]done[/]: {report.found_count}/{report.target_count} pairs • "
                      f"{time.time() - t0:.2f}s")
        console.print(f"[bold]summary[/]: [green]appended[/]={report.appended}  "
                      f"windows={report.windows_scanned}  flushed={report.windows_flushed}  "
                      f"range_queries={report.range_queries}  next_block={report.next_block}")

    try:
        asyncio.run(run())
    except (FatalError, RetriesExhaustedError) as e:
        raise click.ClickException(str(e))


@cli.command("status")
@click.option("--out", "out_path", default=DEFAULT_OUT, show_default=True, help="CSV record store")
@click.option("--genesis", type=click.IntRange(min=0), default=0, show_default=True)
@click.option("--remote/--no-remote", default=False, show_default=True, help="Also ask the node for the target count")
@click.option("--rpc-url", envvar="RPC_URL", default=DEFAULT_RPC_URL, show_default=True)
@click.option("--factory", default=UNIV2_FACTORY, show_default=True)
def status_cmd(out_path, genesis, remote, rpc_url, factory):
    """Show the checkpoint recovered from the CSV store."""
    try:
        state = CsvRecordStore(out_path, genesis_block=genesis, create=False).recover()
    except PairfindError as e:
        raise click.ClickException(str(e))
    console.print(f"[bold]found[/]={state.found_count}  [bold]next_block[/]={state.next_block}")
    if not remote:
        return

    async def target() -> int:
        rpc = HttpxRPC(rpc_url)
        try:
            return await FactoryEventSource(rpc, factory).total_count()
        finally:
            await rpc.aclose()

    try:
        total = asyncio.run(target())
    except PairfindError as e:
        raise click.ClickException(str(e))
    console.print(f"[bold]target[/]={total}  [yellow]remaining[/]={max(0, total - state.found_count)}")


@cli.command("export")
@click.option("--out", "out_path", default=DEFAULT_OUT, show_default=True, help="CSV record store")
@click.option("--parquet", "parquet_path", required=True, help="Destination .parquet file")
@click.option("--codec", default="zstd", show_default=True, type=click.Choice(["zstd", "snappy", "gzip", "none"]))
def export_cmd(out_path, parquet_path, codec):
    """Convert the CSV store to a typed Parquet file."""
    try:
        n = export_parquet(out_path, parquet_path, codec=codec)
    except PairfindError as e:
        raise click.ClickException(str(e))
    console.print(f"[bold]exported[/] {n} pairs → {parquet_path}")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
