#!/usr/bin/env python3
"""
cli.py - Entry point for mbbrowse
Search MusicBrainz and watch cover art fill in as it arrives.
"""

try:
    import asyncio
    import sys
    import argparse
    import threading
    import time
    from pathlib import Path
    from typing import Optional
    from rich.console import Console, RenderableType
    from rich.live import Live
    from rich.panel import Panel
    from rich.prompt import Prompt
    from rich.table import Table
    from rich.text import Text
    import mbbrowse as pkg
    from . import logger
    from .bridge import EventBridge, KindChanged, QueryChanged, Submit
    from .catalog import CoverArtClient, MusicBrainzClient
    from .catalog.types import SEARCH_KINDS, SearchKind, format_kind_label, parse_kind
    from .config import BrowserConfig, load_config, resolve_config_path
    from .orchestrator import Notice, build_orchestrator
    from .results import ResultSnapshot
except ImportError as e:
    print(f"Error: Missing required dependency: {e}")
    print("Please install required dependencies: pip install -e .")
    sys.exit(1)

console = Console()
LIVE_REFRESH_PER_SECOND = 8
_CLI_SESSION_START_MONOTONIC = time.monotonic()
MAIN_MENU_ITEMS: tuple[tuple[str, str], ...] = (
    ("S", "Search"),
    ("R", "Show current results"),
    ("K", "Change search kind"),
    ("Q", "Quit"),
)


def _ui_info(message: str) -> None:
    console.print(f"[cyan][INFO][/cyan] {message}")


def _ui_warn(message: str) -> None:
    console.print(f"[yellow][WARNING][/yellow] {message}")


def _ui_error(message: str) -> None:
    console.print(f"[red][ERROR][/red] {message}")


def _ui_prompt(label: str, default: str | None = None) -> str:
    if default is None:
        return Prompt.ask(label)
    return Prompt.ask(label, default=default)


async def _ui_prompt_async(label: str, default: str | None = None) -> str:
    """Prompt on a daemon thread so cover fetches keep landing meanwhile.

    The thread is never joined: an interrupted prompt must not hold up exit.
    """
    loop = asyncio.get_running_loop()
    answer: asyncio.Future[str] = loop.create_future()

    def _settle(value: str | None, exc: Exception | None) -> None:
        if answer.done():
            return
        if exc is not None:
            answer.set_exception(exc)
        else:
            answer.set_result(value)

    def _ask() -> None:
        try:
            value, exc = _ui_prompt(label, default), None
        except Exception as e:
            value, exc = None, e
        try:
            loop.call_soon_threadsafe(_settle, value, exc)
        except RuntimeError:
            # Loop already closed; nobody is waiting for this answer.
            pass

    threading.Thread(target=_ask, name="mbbrowse-prompt", daemon=True).start()
    return await answer


def _reset_cli_session_timer() -> None:
    global _CLI_SESSION_START_MONOTONIC
    _CLI_SESSION_START_MONOTONIC = time.monotonic()


def _format_elapsed_runtime(seconds: float) -> str:
    if seconds < 60:
        return f"{seconds:.1f}s"
    if seconds < 3_600:
        return f"{seconds / 60:.1f}m"
    return f"{seconds / 3_600:.1f}h"


def _ui_goodbye_with_elapsed() -> None:
    elapsed = max(0.0, time.monotonic() - _CLI_SESSION_START_MONOTONIC)
    _ui_info(f"Goodbye! Elapsed {_format_elapsed_runtime(elapsed)}")


def render_results(bridge: EventBridge, snapshot: ResultSnapshot | None = None, *, busy: bool = False) -> RenderableType:
    snapshot = snapshot or bridge.orchestrator.snapshot()
    if snapshot.kind is None:
        return Text("Searching..." if busy else "No results.", style="dim")

    label = format_kind_label(snapshot.kind)
    rows = bridge.rows(snapshot, busy=busy)
    table = Table(title=f"{label} results for '{bridge.query.strip()}'")
    table.add_column("#", style="dim", justify="right", no_wrap=True)
    table.add_column("Name" if snapshot.kind == "artist" else "Title", style="cyan")
    table.add_column("Details", style="yellow")
    if snapshot.kind != "artist":
        table.add_column("Artist", style="green")
        table.add_column("Cover", justify="right", no_wrap=True)
    for idx, row in enumerate(rows, start=1):
        cells = [str(idx), row.title, row.detail]
        if snapshot.kind != "artist":
            cells.extend([row.credit, row.cover])
        table.add_row(*cells)
    if not rows:
        table.caption = "No matches."
    elif busy and snapshot.pending_ids():
        table.caption = f"Fetching covers... {len(snapshot.pending_ids())} pending"
    return table


async def _render_until_idle(bridge: EventBridge) -> None:
    orchestrator = bridge.orchestrator
    with Live(render_results(bridge, busy=True), console=console, refresh_per_second=LIVE_REFRESH_PER_SECOND) as live:
        unsubscribe = orchestrator.subscribe(
            lambda snapshot: live.update(render_results(bridge, snapshot, busy=True))
        )
        try:
            await orchestrator.wait_idle()
        finally:
            unsubscribe()
        live.update(render_results(bridge, busy=False))


def _submit_search(bridge: EventBridge, kind: SearchKind, query: str) -> bool:
    bridge.dispatch(KindChanged(kind))
    bridge.dispatch(QueryChanged(query))
    if bridge.dispatch(Submit()) is None:
        _ui_warn("Nothing to search for.")
        return False
    return True


async def _run_search(bridge: EventBridge, kind: SearchKind, query: str) -> None:
    """One-shot search: keep the live table up until every cover has settled."""
    if _submit_search(bridge, kind, query):
        await _render_until_idle(bridge)


def _show_results(bridge: EventBridge) -> None:
    busy = bridge.orchestrator.busy
    console.print(render_results(bridge, busy=busy))
    if busy:
        _ui_info("Covers are still loading; choose R at the menu to refresh.")


async def _run_menu_search(bridge: EventBridge, query: str) -> None:
    # Back to the menu as soon as results land; covers fill in behind it.
    if not _submit_search(bridge, bridge.kind, query):
        return
    await bridge.orchestrator.wait_idle(include_enrichment=False)
    _show_results(bridge)


def _render_main_menu(bridge: EventBridge) -> None:
    console.print()
    console.print(Panel(f"[bold blue]MBBROWSE[/bold blue]  search kind: [cyan]{format_kind_label(bridge.kind)}[/cyan]"))
    for key, label in MAIN_MENU_ITEMS:
        console.print(f"    [{key}] {label}")
    console.print()


async def _prompt_kind(current: SearchKind) -> Optional[SearchKind]:
    console.print("\nSearch kind:")
    for idx, kind in enumerate(SEARCH_KINDS, start=1):
        marker = " (current)" if kind == current else ""
        console.print(f"  [{idx}] {format_kind_label(kind)}{marker}")
    choice = (await _ui_prompt_async("Kind", default=str(SEARCH_KINDS.index(current) + 1))).strip()
    if choice.isdigit() and 1 <= int(choice) <= len(SEARCH_KINDS):
        return SEARCH_KINDS[int(choice) - 1]
    try:
        return parse_kind(choice)
    except ValueError as exc:
        _ui_warn(str(exc))
        return None


async def _interactive_session(bridge: EventBridge) -> None:
    while True:
        _render_main_menu(bridge)
        choice = (await _ui_prompt_async("Choice", default="S")).strip().upper()
        if choice == "Q":
            return
        if choice == "K":
            kind = await _prompt_kind(bridge.kind)
            if kind is not None:
                bridge.dispatch(KindChanged(kind))
            continue
        if choice == "R":
            _show_results(bridge)
            continue
        if choice == "S":
            query = await _ui_prompt_async(f"{format_kind_label(bridge.kind)} search", default=bridge.query or None)
            await _run_menu_search(bridge, query)
            continue
        _ui_warn("Unknown choice. Please select a listed option.")


async def run_session(
    config: BrowserConfig,
    *,
    kind: SearchKind = "artist",
    query: str | None = None,
) -> int:
    """Run one search (when `query` is given) or the interactive menu."""
    catalog = MusicBrainzClient(config.catalog)
    images = CoverArtClient(config.images, user_agent=config.catalog.user_agent)
    orchestrator = build_orchestrator(catalog, images, max_concurrency=config.images.concurrency_limit())
    bridge = EventBridge(orchestrator)
    search_failed = False

    def _on_notice(notice: Notice) -> None:
        nonlocal search_failed
        search_failed = True
        logger.error(notice.message)

    orchestrator.subscribe_notices(_on_notice)
    try:
        async with orchestrator:
            if query is not None:
                await _run_search(bridge, kind, query)
                return 1 if search_failed else 0
            bridge.dispatch(KindChanged(kind))
            await _interactive_session(bridge)
            return 0
    finally:
        await catalog.close()
        await images.close()


def show_help(parser: argparse.ArgumentParser) -> None:
    print(f"MBBROWSE v{getattr(pkg, '__version__', '0.0.0')} - MusicBrainz search with cover art")
    print()
    parser.print_help()


def main():
    """Entry point"""
    _reset_cli_session_timer()
    parser = argparse.ArgumentParser(add_help=False)
    for args, kwargs in (
        (("-h", "--help"), {"action": "store_true", "help": "Show help"}),
        (("-c", "--config"), {"metavar": "PATH", "help": "Path to config.toml (file or directory)"}),
        (("-k", "--kind"), {"metavar": "KIND", "default": "artist", "help": "artist, release or release-group (default: artist)"}),
        (("-d", "--debug"), {"action": "store_true", "help": "Debug mode with API calls and timestamps"}),
        (("--log-file",), {"metavar": "PATH", "help": "Also write log output to this file"}),
    ):
        parser.add_argument(*args, **kwargs)
    parser.add_argument("query", nargs="*", help="Search text; omit for the interactive menu")

    try:
        args = parser.parse_args()
        if args.help:
            show_help(parser)
            sys.exit(0)

        config = load_config(resolve_config_path(args.config))
        try:
            kind = parse_kind(args.kind)
        except ValueError as exc:
            _ui_error(str(exc))
            sys.exit(2)

        log_path = Path(args.log_file).expanduser() if args.log_file else config.logging.log_path()
        with logger.BrowserLogger(log_file=log_path, debug=args.debug or config.logging.debug, console=console) as log:
            logger.set_logger(log)
            query = " ".join(args.query) if args.query else None
            code = asyncio.run(run_session(config, kind=kind, query=query))
            if query is None:
                _ui_goodbye_with_elapsed()
        sys.exit(code)
    except KeyboardInterrupt:
        _ui_goodbye_with_elapsed()
        sys.exit(0)
    except Exception as e:
        _ui_error(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
