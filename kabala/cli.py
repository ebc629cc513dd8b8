"""CLI entry point."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

from dotenv import load_dotenv

from .acquire import ReceiptSource, read_receipt
from .config import KabalaConfig, load_config
from .db import AliasDB, CatalogDB, PurchaseDB
from .matching import ItemResolver, MatchTier, confidence_tier
from .pipeline import ParseResult, ReceiptPipeline
from .session import ReceiptImportSession

_TIER_LABELS = {
    MatchTier.CONFIRMED: "✔ confirmed",
    MatchTier.SUGGESTED: "? suggested",
    MatchTier.NO_MATCH: "· no match",
}


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="kabala",
        description="Parse Israeli supermarket receipts and track what you buy",
    )
    parser.add_argument(
        "--config", "-c", type=str, default=None, help="Config file path (TOML)"
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable debug logging"
    )

    sub = parser.add_subparsers(dest="command")

    # parse
    parse_parser = sub.add_parser("parse", help="Parse a receipt")
    _add_source_args(parse_parser)
    parse_parser.add_argument("--json", action="store_true", help="Output as JSON")

    # match
    match_parser = sub.add_parser("match", help="Parse a receipt and match its items")
    _add_source_args(match_parser)
    match_parser.add_argument("--owner", required=True, help="Owner ID")
    match_parser.add_argument("--json", action="store_true", help="Output as JSON")

    # import
    import_parser = sub.add_parser(
        "import", help="Parse, match, confirm and save a receipt"
    )
    _add_source_args(import_parser)
    import_parser.add_argument("--owner", required=True, help="Owner ID")
    import_parser.add_argument("--list-id", default=None, help="Link to a list")
    import_parser.add_argument(
        "--interactive", "-i", action="store_true",
        help="Review each suggested match before saving",
    )

    # aliases
    aliases_parser = sub.add_parser("aliases", help="List or delete learned aliases")
    aliases_parser.add_argument("--owner", required=True, help="Owner ID")
    aliases_parser.add_argument(
        "--delete", type=int, default=None, metavar="ID", help="Delete an alias"
    )
    aliases_parser.add_argument("--json", action="store_true", help="Output as JSON")

    # unmatched
    unmatched_parser = sub.add_parser(
        "unmatched", help="List purchased names without a known identity"
    )
    unmatched_parser.add_argument("--owner", required=True, help="Owner ID")

    # prices
    prices_parser = sub.add_parser("prices", help="Show price history for an item")
    prices_parser.add_argument("--owner", required=True, help="Owner ID")
    prices_parser.add_argument("item", help="Item name")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    load_dotenv()

    config = load_config(args.config)

    match args.command:
        case "parse":
            asyncio.run(_cmd_parse(config, args))
        case "match":
            asyncio.run(_cmd_match(config, args))
        case "import":
            asyncio.run(_cmd_import(config, args))
        case "aliases":
            _cmd_aliases(config, args)
        case "unmatched":
            _cmd_unmatched(config, args)
        case "prices":
            _cmd_prices(config, args)


def _add_source_args(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "file", nargs="?", default=None,
        help="Receipt file (text, PDF or image); '-' reads stdin",
    )
    p.add_argument("--text", type=str, default=None, help="Receipt text")
    p.add_argument(
        "--no-ai", action="store_true", help="Use only the pattern parser"
    )


def _load_source(args) -> ReceiptSource:
    if args.text is not None:
        return ReceiptSource.from_text(args.text)
    if args.file is None or args.file == "-":
        return ReceiptSource.from_text(sys.stdin.read())
    return read_receipt(args.file)


def _build_pipeline(config: KabalaConfig, args) -> ReceiptPipeline:
    if args.no_ai:
        return ReceiptPipeline()
    return ReceiptPipeline.from_config(config)


def _build_resolver(config: KabalaConfig) -> tuple[ItemResolver, AliasDB, CatalogDB]:
    aliases = AliasDB(config.database.path)
    catalog = CatalogDB(config.database.path)
    resolver = ItemResolver(
        aliases, catalog, global_sample_limit=config.matching.global_sample_limit
    )
    return resolver, aliases, catalog


def _print_receipt(result: ParseResult) -> None:
    receipt = result.receipt
    print(f"Store:  {receipt.store_name or '-'}")
    print(f"Date:   {receipt.purchase_date or '-'}")
    print(f"Total:  {receipt.total_amount if receipt.total_amount is not None else '-'}")
    print(f"Parser: {result.parser_used.value}", end="")
    if result.fallback_reason is not None:
        print(f" ({result.fallback_reason.value})", end="")
    print()
    if result.needs_manual_entry:
        print("\nNo items found. Enter the items manually.")
        return
    print(f"\nItems ({len(receipt.items)}):")
    for item in receipt.items:
        total = f"{item.total_price:.2f}" if item.total_price is not None else "-"
        print(f"  {item.name:<30} x{item.quantity:<6g} {total:>8}")


async def _cmd_parse(config: KabalaConfig, args) -> None:
    pipeline = _build_pipeline(config, args)
    result = await pipeline.parse_source(_load_source(args))

    if args.json:
        print(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
    else:
        _print_receipt(result)


async def _cmd_match(config: KabalaConfig, args) -> None:
    pipeline = _build_pipeline(config, args)
    result = await pipeline.parse_source(_load_source(args))

    resolver, aliases, catalog = _build_resolver(config)
    try:
        matched = resolver.match_items(
            args.owner, result.receipt.items, result.receipt.store_name
        )
    finally:
        aliases.close()
        catalog.close()

    if args.json:
        data = result.to_dict()
        data["matches"] = [m.to_dict() for m in matched]
        print(json.dumps(data, ensure_ascii=False, indent=2))
        return

    _print_receipt(result)
    if matched:
        print("\nMatches:")
        for m in matched:
            target = m.matched_canonical_name or ""
            print(
                f"  {m.original_name:<30} → {target:<24} "
                f"{m.confidence:>3}  {_TIER_LABELS[confidence_tier(m)]}"
            )


async def _cmd_import(config: KabalaConfig, args) -> None:
    pipeline = _build_pipeline(config, args)
    resolver, aliases, catalog = _build_resolver(config)
    purchases = PurchaseDB(config.database.path)

    session = ReceiptImportSession(
        args.owner, pipeline, resolver, aliases, purchases, list_id=args.list_id
    )
    source = _load_source(args)
    try:
        if source.text is not None:
            result = await session.load_text(source.text, source=source.origin)
        else:
            result = await session.load_document(
                source.data or b"", source.mime_type, source=source.origin
            )
        _print_receipt(result)

        if result.needs_manual_entry:
            return
        if args.interactive:
            _review(session, resolver, args.owner)

        saved = session.save()
    finally:
        aliases.close()
        catalog.close()
        purchases.close()

    print(f"\nSaved purchase #{saved.record_id}: {saved.aliases_saved} aliases learned")
    if saved.alias_failures:
        print(
            f"Warning: could not save aliases for {', '.join(saved.alias_failures)}",
            file=sys.stderr,
        )


def _review(session: ReceiptImportSession, resolver: ItemResolver, owner_id: str) -> None:
    for index, m in enumerate(session.matched):
        if session.tier(index) is MatchTier.CONFIRMED:
            continue
        print(f"\n{m.original_name}")
        if m.matched_canonical_name:
            print(f"  suggestion: {m.matched_canonical_name} ({m.confidence})")
        answer = input("  [a]pprove / [r]eject / [c]hange / [s]kip: ").strip().lower()
        if answer == "a" and m.matched_canonical_name:
            session.approve(index)
        elif answer == "r":
            session.reject(index)
        elif answer == "c":
            options = resolver.suggest(owner_id, m.original_name)
            for n, name in enumerate(options, 1):
                print(f"    {n}. {name}")
            choice = input("  number or new name: ").strip()
            if choice.isdigit() and 1 <= int(choice) <= len(options):
                choice = options[int(choice) - 1]
            if choice:
                session.change(index, choice)


def _cmd_aliases(config: KabalaConfig, args) -> None:
    db = AliasDB(config.database.path)
    try:
        if args.delete is not None:
            db.delete_alias(args.delete)
            print(f"Deleted alias {args.delete}")
            return
        aliases = db.list_aliases(args.owner)
    finally:
        db.close()

    if args.json:
        data = [
            {
                "id": a.id,
                "aliasName": a.alias_name,
                "canonicalName": a.canonical_name,
                "storeName": a.store_name,
                "confirmed": a.confirmed,
            }
            for a in aliases
        ]
        print(json.dumps(data, ensure_ascii=False, indent=2))
        return
    if not aliases:
        print("No aliases yet.")
        return
    for a in aliases:
        store = f"  [{a.store_name}]" if a.store_name else ""
        print(f"  #{a.id:<5} {a.alias_name} → {a.canonical_name}{store}")


def _cmd_unmatched(config: KabalaConfig, args) -> None:
    resolver, aliases, catalog = _build_resolver(config)
    purchases = PurchaseDB(config.database.path)
    try:
        names = resolver.unmatched_names(
            args.owner, purchases.purchase_item_names(args.owner)
        )
    finally:
        aliases.close()
        catalog.close()
        purchases.close()

    if not names:
        print("Every purchased item has a known identity.")
        return
    for name in names:
        print(f"  {name}")


def _cmd_prices(config: KabalaConfig, args) -> None:
    db = PurchaseDB(config.database.path)
    try:
        history = db.price_history(args.owner, args.item)
    finally:
        db.close()

    if not history:
        print(f"No prices recorded for {args.item}.")
        return
    for point in history:
        unit = point["unit_price"]
        unit_text = f"{unit:.2f}" if unit is not None else "-"
        print(
            f"  {point['purchase_date'] or 'N/A':<10}  {point['price']:>8.2f}"
            f"  ({unit_text}/unit)  {point['store_name'] or ''}"
        )
