"""CLI entrypoint: run one UCIE analysis or serve the session API."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Optional

from config import get_settings
from core import SessionSnapshot, SessionStatus
from jobs import UCIEClient
from orchestrator.service import AnalysisOrchestrator
from utils.exceptions import ValidationError
from utils.logger import console, setup_package_loggers


def _format_elapsed(seconds: int) -> str:
    minutes, secs = divmod(max(0, int(seconds)), 60)
    return f"{minutes}:{secs:02d}"


class _ProgressPrinter:
    """Prints a line whenever status, stage or collection count changes."""

    def __init__(self) -> None:
        self._last: Optional[tuple] = None

    def __call__(self, snapshot: SessionSnapshot) -> None:
        key = (snapshot.status, snapshot.stage, snapshot.data_collection.completed, snapshot.progress)
        if key == self._last:
            return
        self._last = key
        sources = ""
        if snapshot.data_collection.total:
            sources = f" [{snapshot.data_collection.completed}/{snapshot.data_collection.total} sources]"
        console.print(
            f"[bold]{snapshot.status.value:<10}[/bold] {snapshot.progress:>3}%"
            f" {_format_elapsed(snapshot.elapsed_time)}{sources} {snapshot.stage or snapshot.message}"
        )


async def _analyze(subject: str, *, research: bool, base_url: Optional[str], as_json: bool) -> int:
    settings = get_settings()
    client = UCIEClient(base_url or settings.api.base_url, timeout_s=settings.api.request_timeout)
    orchestrator = AnalysisOrchestrator(client=client, settings=settings)
    try:
        session = orchestrator.open(subject)
        if not as_json:
            session.subscribe(_ProgressPrinter())
        session.start(include_research=research)
        try:
            snapshot = await session.wait()
        except asyncio.CancelledError:
            session.cancel()
            raise
    finally:
        await orchestrator.aclose()

    if as_json:
        print(json.dumps(snapshot.model_dump(mode="json"), ensure_ascii=False))
    elif snapshot.status == SessionStatus.COMPLETED and snapshot.result is not None:
        console.print_json(json.dumps(snapshot.result.summary, ensure_ascii=False, default=str))
    elif snapshot.error:
        console.print(f"[red]{snapshot.error}[/red]")
    return 0 if snapshot.status == SessionStatus.COMPLETED else 1


def main(argv: Optional[list] = None) -> int:
    parser = argparse.ArgumentParser(description="UCIE analysis orchestration CLI")
    sub = parser.add_subparsers(dest="command", required=True)

    analyze = sub.add_parser("analyze")
    analyze.add_argument("subject")
    analyze.add_argument("--research", action="store_true", help="also run Caesar deep research")
    analyze.add_argument("--base-url", default="")
    analyze.add_argument("--json", action="store_true", dest="as_json")

    serve = sub.add_parser("serve")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)

    args = parser.parse_args(argv)
    setup_package_loggers()

    if args.command == "analyze":
        try:
            return asyncio.run(
                _analyze(
                    args.subject,
                    research=bool(args.research),
                    base_url=str(args.base_url).strip() or None,
                    as_json=bool(args.as_json),
                )
            )
        except ValidationError as exc:
            console.print(f"[red]{exc.message}[/red]")
            return 2
        except KeyboardInterrupt:
            console.print("[yellow]Analysis cancelled[/yellow]")
            return 130

    if args.command == "serve":
        import uvicorn

        uvicorn.run("webapp.app:app", host=args.host, port=int(args.port))
        return 0

    return 1


if __name__ == "__main__":
    sys.exit(main())
