import asyncio
import inspect
import logging

import typer
from dotenv import load_dotenv
from InquirerPy import inquirer

from chain_equity_indexer.app.domain.errors import CatchUpError, IndexerError
from chain_equity_indexer.app.interface.tasks import TASKS
from chain_equity_indexer.app.interface.tasks.rescan_task import rescan_task
from chain_equity_indexer.app.interface.tasks.start_indexer_task import start_indexer_task
from chain_equity_indexer.app.interface.tasks.status_task import status_task


load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)

app = typer.Typer()
indexer_app = typer.Typer(help="cli for indexing cap table events.")
app.add_typer(indexer_app, name="indexer")


@indexer_app.command("run")
def run() -> None:
    """Pick a task interactively."""
    task_name = inquirer.select(
        message="Select task:",
        choices=list(TASKS.keys()),
        pointer="❯",
        instruction="Use ↑/↓ to move, Enter to select",
    ).execute()

    task = TASKS[task_name]
    kwargs: dict[str, object] = {}
    params = inspect.signature(task).parameters

    if "from_block" in params:
        kwargs["from_block"] = inquirer.text(
            message="From block (inclusive):",
            default="0",
        ).execute()
    if "to_block" in params:
        kwargs["to_block"] = inquirer.text(
            message="To block (inclusive, 'latest' = confirmation-safe head):",
            default="latest",
        ).execute()

    _run_task(task(**kwargs))


@indexer_app.command("start")
def start() -> None:
    """Catch up, then follow new events until interrupted."""
    _run_task(start_indexer_task())


@indexer_app.command("rescan")
def rescan(
    from_block: int = typer.Option(..., "--from-block", min=0, help="First block (inclusive)."),
    to_block: int | None = typer.Option(
        None, "--to-block", min=0, help="Last block (inclusive); defaults to the safe head."
    ),
) -> None:
    """Re-index an explicit block range."""
    _run_task(rescan_task(from_block=from_block, to_block=to_block))


@indexer_app.command("status")
def status() -> None:
    """Show checkpoint and table counts."""
    result = _run_task(status_task())
    typer.echo(f"last_indexed_block: {result.last_indexed_block}")
    typer.echo(f"indexer_version:    {result.indexer_version}")
    typer.echo(f"events:             {result.events}")
    typer.echo(f"transactions:       {result.transactions}")
    typer.echo(f"corporate_actions:  {result.corporate_actions}")
    typer.echo(f"shareholders:       {result.shareholders}")


def _run_task(coro):  # type: ignore[no-untyped-def]
    try:
        return asyncio.run(coro)
    except CatchUpError as exc:
        # Serving stale data is worse than not starting.
        typer.echo(f"Indexer failed to start: {exc.__cause__ or exc}", err=True)
        raise typer.Exit(code=1)
    except IndexerError as exc:
        typer.echo(f"Indexer error: {exc}", err=True)
        raise typer.Exit(code=1)


if __name__ == "__main__":
    typer.echo("--- Chain Equity Indexer CLI ---")
    app()
