from __future__ import annotations

import argparse
import asyncio
from dataclasses import dataclass, field, replace
import json
import logging
import sys
from pathlib import Path

from country_lookup.config import RuntimeConfig, config_from_env
from country_lookup.controller import RetrievalController, ViewSnapshot
from country_lookup.html_renderer import write_html_report
from country_lookup.presenter import ConsolePresenter
from country_lookup.sources import BundledFallbackSource, RemoteRecordSource
from country_lookup.sources.common import configure_debug
from country_lookup.tracing import configure_tracing


@dataclass
class LookupResult:
    snapshot: ViewSnapshot
    rows: list[str]
    notices: list[str] = field(default_factory=list)
    deal: str | None = None

    def to_dict(self) -> dict:
        return {
            **self.snapshot.to_dict(),
            "notices": self.notices,
            "deal": self.deal,
        }


async def run_lookup(
    config: RuntimeConfig,
    *,
    search: str | None = None,
    pick: bool = False,
) -> LookupResult:
    """Load once, optionally apply a search and a random pick, and return the final view."""
    controller = RetrievalController(
        RemoteRecordSource(config),
        BundledFallbackSource(config.fallback_path),
        config,
    )
    presenter = ConsolePresenter(controller, emit=lambda line: print(line, file=sys.stderr))
    try:
        await controller.load()
        if search:
            controller.set_search_text(search)
            controller.flush_search()
        deal = presenter.show_deal() if pick else None
        return LookupResult(
            snapshot=controller.snapshot(),
            rows=list(presenter.rows),
            notices=list(presenter.notices),
            deal=deal,
        )
    finally:
        controller.close()


def _apply_cli_overrides(config: RuntimeConfig, args: argparse.Namespace) -> RuntimeConfig:
    overrides: dict = {}
    if args.endpoint is not None:
        overrides["endpoint_url"] = args.endpoint
    if args.retries is not None:
        overrides["max_retries"] = max(0, args.retries)
    if args.timeout is not None:
        overrides["request_timeout_seconds"] = max(1.0, args.timeout)
    if args.retry_delay is not None:
        overrides["retry_delay_seconds"] = max(0.0, args.retry_delay)
    if args.fallback_path is not None:
        overrides["fallback_path"] = args.fallback_path
    return replace(config, **overrides)


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Country list lookup with offline fallback")
    parser.add_argument("--endpoint", default=None, help="Country list JSON endpoint URL")
    parser.add_argument("--retries", type=int, default=None, help="Retries after the first failed fetch")
    parser.add_argument("--timeout", type=float, default=None, help="Request timeout in seconds")
    parser.add_argument("--retry-delay", type=float, default=None, help="Delay between fetch attempts in seconds")
    parser.add_argument("--fallback-path", default=None, help="JSON file used when the endpoint is unavailable")
    parser.add_argument("--search", default=None, help="Filter by name or capital (case-insensitive)")
    parser.add_argument("--pick", action="store_true", help="Pick a random deal-of-the-day country")
    parser.add_argument("--json", action="store_true", help="Print the final view as JSON")
    parser.add_argument("--html-out", default=None, help="Also write the final view as an HTML page")
    parser.add_argument("--debug-sources", action="store_true", help="Write raw fetched payloads to debug directory")
    parser.add_argument("--debug-dir", default="debug/sources", help="Debug snapshot directory for --debug-sources")
    parser.add_argument("--log-level", default="WARNING", help="Logging level (DEBUG, INFO, WARNING, ...)")
    return parser


def main() -> None:
    """CLI entrypoint."""
    configure_tracing()
    args = _build_arg_parser().parse_args()
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    configure_debug(args.debug_sources, args.debug_dir)

    config = _apply_cli_overrides(config_from_env(), args)
    result = asyncio.run(run_lookup(config, search=args.search, pick=args.pick))

    if args.html_out:
        report_path = write_html_report(result.snapshot, Path(args.html_out))
        print(f"HTML report written to: {report_path}", file=sys.stderr)

    if args.json:
        print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
        return

    for row in result.rows:
        print(row)
    print(f"Countries: {len(result.snapshot.records)} ({result.snapshot.origin or 'none'})")
    print(f"Shown: {len(result.snapshot.filtered)}")
    print(f"Status: {result.snapshot.status}")


if __name__ == "__main__":
    main()
