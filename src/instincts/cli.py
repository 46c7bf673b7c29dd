"""Command line front end for observing, listing, sharing and decaying instincts."""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence
from pathlib import Path

from pydantic import ValidationError

from instincts.config import InstinctSettings, get_settings
from instincts.errors import InstinctStoreError
from instincts.patterns import PatternStore
from instincts.store import Instinct

logger = logging.getLogger(__name__)


def _format_instinct(instinct: Instinct) -> str:
    line = (
        f"- {instinct.id} [{instinct.context or '-'}] "
        f"confidence={instinct.confidence:.2f} uses={instinct.usage_count}"
    )
    if instinct.description:
        line += f": {instinct.description}"
    return line


def _print_instincts(instincts: Sequence[Instinct]) -> None:
    for instinct in instincts:
        print(_format_instinct(instinct))
    print(f"{len(instincts)} instinct(s).")


def _observe(store: PatternStore, args: argparse.Namespace) -> None:
    candidate = {
        "id": args.id,
        "context": args.context,
        "confidence": args.confidence,
        "description": args.description,
    }
    record = store.add_or_update(
        {key: value for key, value in candidate.items() if value is not None}
    )
    print(
        f"Recorded {record.id}: confidence={record.confidence:.2f} "
        f"uses={record.usage_count}"
    )


def _list(store: PatternStore, args: argparse.Namespace) -> None:
    _print_instincts(store.query_by_context(args.context))


def _high(store: PatternStore, args: argparse.Namespace) -> None:
    _print_instincts(store.query_by_confidence(args.threshold))


def _export(store: PatternStore, args: argparse.Namespace) -> None:
    exported = store.export_to(args.destination)
    print(f"Exported {len(exported.instincts)} instinct(s) to {args.destination}")


def _import(store: PatternStore, args: argparse.Namespace) -> None:
    merged = store.import_from(args.source)
    print(f"Store now contains {len(merged.instincts)} instinct(s).")


def _decay(store: PatternStore, args: argparse.Namespace) -> None:
    before = {instinct.id: instinct.confidence for instinct in store.load().instincts}
    after = store.decay_unused(args.days)
    decayed = [
        instinct.id
        for instinct in after.instincts
        if instinct.confidence != before.get(instinct.id, instinct.confidence)
    ]
    print(f"Decayed {len(decayed)} of {len(after.instincts)} instinct(s).")
    for instinct_id in decayed:
        print(f"* {instinct_id}")


def build_parser(settings: InstinctSettings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="instincts",
        description="Manage the learned-pattern instinct store.",
    )
    parser.add_argument(
        "--store",
        type=Path,
        default=settings.store_path,
        help="Instinct store JSON file (default: %(default)s).",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    p_observe = subparsers.add_parser("observe", help="Record or reinforce a pattern")
    p_observe.add_argument("id", help="Pattern id.")
    p_observe.add_argument("--context", help="Grouping tag for the pattern.")
    p_observe.add_argument("--confidence", type=float, help="Initial confidence for a new pattern.")
    p_observe.add_argument("--description", help="Human-readable description.")
    p_observe.set_defaults(handler=_observe)

    p_list = subparsers.add_parser("list", help="List patterns, optionally by context")
    p_list.add_argument("--context", help="Only show patterns with this context.")
    p_list.set_defaults(handler=_list)

    p_high = subparsers.add_parser("high", help="List high-confidence patterns")
    p_high.add_argument(
        "--threshold",
        type=float,
        default=settings.high_confidence_threshold,
        help="Minimum confidence (default: %(default)s).",
    )
    p_high.set_defaults(handler=_high)

    p_export = subparsers.add_parser("export", help="Export the store to a file")
    p_export.add_argument("destination", type=Path, help="File to write.")
    p_export.set_defaults(handler=_export)

    p_import = subparsers.add_parser("import", help="Merge an exported file into the store")
    p_import.add_argument("source", type=Path, help="File to read.")
    p_import.set_defaults(handler=_import)

    p_decay = subparsers.add_parser("decay", help="Decay confidence of unused patterns")
    p_decay.add_argument(
        "--days",
        type=float,
        default=settings.decay_days,
        help="Idle days before a pattern decays (default: %(default)s).",
    )
    p_decay.set_defaults(handler=_decay)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    try:
        settings = get_settings()
    except ValidationError as exc:
        print(f"error: invalid INSTINCTS_* settings: {exc}", file=sys.stderr)
        return 1
    logging.basicConfig(level=settings.log_level)

    args = build_parser(settings).parse_args(argv)
    store = PatternStore(args.store, strict=settings.strict_load)
    try:
        args.handler(store, args)
    except (InstinctStoreError, ValueError) as exc:
        logger.debug("Command %s failed", args.command, exc_info=True)
        print(f"error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
