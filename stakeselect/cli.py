import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Optional, TextIO

from . import __version__
from .client import SearchError, build_client
from .circuit import CircuitOpenError
from .config import Settings, load_settings
from .initializer import resolve_initial_selection
from .logger import get_logger
from .models import StakeholderRef
from .search import ENTITY_NAMESPACE, MATCH_MODE, is_blank, normalize_query
from .selector import StakeholderSelector

PICK_HELP = "Type to search. Commands: :list  :pick N  :clear  :show  :quit"


def _read_json(path: Optional[str]) -> Optional[dict]:
    if not path:
        return None
    p = Path(path)
    if not p.exists():
        raise SystemExit(f"Input file not found: {p}")
    try:
        with p.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise SystemExit(f"Invalid JSON in {p}: {e}")
    if not isinstance(data, dict):
        raise SystemExit(f"Expected a JSON object in {p}")
    return data


def _dump(value: Optional[StakeholderRef]) -> Any:
    return value.to_dict() if value is not None else None


def cmd_search(args: argparse.Namespace, settings: Settings) -> None:
    query = normalize_query(args.query)
    if is_blank(query):
        raise SystemExit("Query is empty.")
    client = build_client(settings)
    if client is None:
        print("Search unavailable: set ZOHO_ACCESS_TOKEN.", file=sys.stderr)
        raise SystemExit(2)
    try:
        results = client.search(args.entity, MATCH_MODE, query)
    except (SearchError, CircuitOpenError) as e:
        print(f"Search failed: {e}", file=sys.stderr)
        raise SystemExit(2)
    finally:
        client.close()

    if not results:
        print("No matches.")
        return
    for ref in results:
        print(f"{ref.id}\t{ref.name}")


def cmd_resolve(args: argparse.Namespace, settings: Settings) -> None:
    initial = resolve_initial_selection(
        _read_json(args.form_data),
        _read_json(args.record),
        _read_json(args.row),
    )
    print(json.dumps({
        "source": initial.source,
        "selected": _dump(initial.selected),
        "display_text": initial.display_text,
    }, indent=2, ensure_ascii=False))


async def run_pick_session(selector: StakeholderSelector, stream: TextIO, out: TextIO) -> None:
    """Drive a selector from text lines until :quit or end of input."""
    loop = asyncio.get_running_loop()
    print(PICK_HELP, file=out)
    while True:
        line = await loop.run_in_executor(None, stream.readline)
        if not line:
            break
        line = line.rstrip("\r\n")
        command, _, arg = line.strip().partition(" ")

        if command == ":quit":
            break
        elif command == ":list":
            await selector.wait_idle()
            if not selector.candidates:
                print("(no candidates)", file=out)
            for i, ref in enumerate(selector.candidates, start=1):
                print(f"{i:>3}. {ref.name} [{ref.id}]", file=out)
        elif command == ":pick":
            try:
                index = int(arg) - 1
                if index < 0:
                    raise IndexError(index)
                ref = selector.candidates[index]
            except (ValueError, IndexError):
                print(f"No candidate {arg!r}; use :list first.", file=out)
                continue
            selector.select(ref)
            # echo the picked label into the input, as the dropdown does
            selector.on_input(ref.name)
        elif command == ":clear":
            selector.clear()
        elif command == ":show":
            print(json.dumps({
                "selected": _dump(selector.selected),
                "display_text": selector.display_text,
                "uncommitted": selector.is_dirty,
            }, ensure_ascii=False), file=out)
        else:
            selector.on_input(line)


def cmd_pick(args: argparse.Namespace, settings: Settings) -> None:
    def on_change(field: str, value: Optional[StakeholderRef]) -> None:
        print(json.dumps({"field": field, "value": _dump(value)}, ensure_ascii=False))

    async def session() -> None:
        selector = StakeholderSelector.from_settings(
            settings,
            on_change,
            form_data=_read_json(args.form_data),
            current_record=_read_json(args.record),
            selected_row=_read_json(args.row),
            entity=args.entity,
        )
        async with selector:
            if selector.display_text:
                print(f"Current: {selector.display_text}")
            await run_pick_session(selector, sys.stdin, sys.stdout)

    asyncio.run(session())


def main(argv: Optional[list[str]] = None) -> None:
    settings, warnings = load_settings()
    logger = get_logger(level=settings.log_level, log_dir=settings.log_dir)
    for w in warnings:
        logger.warning(w)

    parser = argparse.ArgumentParser(prog="stakeselect", description="Stakeholder directory search and selection")
    parser.add_argument("--version", action="store_true", help="Show version")

    subparsers = parser.add_subparsers(dest="command")
    srch = subparsers.add_parser("search", help="Run one immediate search and print id<TAB>name lines")
    srch.add_argument("query", help="Text to match (word search)")
    srch.add_argument("--entity", default=ENTITY_NAMESPACE, help=f"Directory namespace (default: {ENTITY_NAMESPACE})")
    srch.set_defaults(func=cmd_search)

    res = subparsers.add_parser("resolve", help="Print the initial selection resolved from host context files")
    res.add_argument("--form-data", help="JSON file with the form state (stakeHolder)")
    res.add_argument("--record", help="JSON file with the current CRM record (Stake_Holder)")
    res.add_argument("--row", help="JSON file with the selected row (stakeHolder)")
    res.set_defaults(func=cmd_resolve)

    pck = subparsers.add_parser("pick", help="Interactive search-and-pick session on stdin")
    pck.add_argument("--form-data", help="JSON file with the form state (stakeHolder)")
    pck.add_argument("--record", help="JSON file with the current CRM record (Stake_Holder)")
    pck.add_argument("--row", help="JSON file with the selected row (stakeHolder)")
    pck.add_argument("--entity", default=ENTITY_NAMESPACE, help=f"Directory namespace (default: {ENTITY_NAMESPACE})")
    pck.set_defaults(func=cmd_pick)

    args = parser.parse_args(argv)

    if args.version:
        print(__version__)
        return

    if hasattr(args, "func"):
        try:
            args.func(args, settings)
        finally:
            logger.log_metrics_summary()
        return

    parser.print_help()


if __name__ == "__main__":
    main()
