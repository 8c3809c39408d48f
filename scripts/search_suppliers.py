#!/usr/bin/env python3
"""Search one or more supplier catalogs from the command line."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

ROOT_DIR = Path(__file__).resolve().parent.parent
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from rich import box
from rich.console import Console
from rich.table import Table

from core.search_orchestrator import SearchOrchestrator
from core.suppliers import SupplierRegistry
from core.tab_platform import PlaywrightTabPlatform
from core.types import Availability, ProductRecord, SearchResult, SearchSettings
from services.aggregation import merge_results
from utils.config_loader import load_config
from utils.error_handling import ConfigurationError, UnknownSupplierError
from utils.logger import setup_logger


_AVAILABILITY_STYLES = {
    Availability.IN_STOCK: "[green]en stock[/green]",
    Availability.OUT_OF_STOCK: "[red]rupture[/red]",
    Availability.NEEDS_LOGIN: "[yellow]connexion requise[/yellow]",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Search supplier catalogs for parts")
    parser.add_argument("query", help="Search terms, e.g. 'ecran iphone 11'")
    parser.add_argument(
        "--supplier",
        "-s",
        action="append",
        dest="suppliers",
        help="Supplier to search (repeatable, default: every configured supplier)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=Path("config/settings.json"),
        help="Path to settings JSON",
    )
    parser.add_argument("--headless", action="store_true", help="Run the browser headless")
    parser.add_argument("--json", action="store_true", help="Print merged results as JSON")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    return parser


def render_table(console: Console, products: List[ProductRecord], results: Sequence[SearchResult]) -> None:
    table = Table(box=box.SIMPLE_HEAVY, show_lines=False)
    table.add_column("Produit", overflow="fold")
    table.add_column("Réf.")
    table.add_column("Fournisseur")
    table.add_column("Prix", justify="right")
    table.add_column("Dispo.")

    for product in products:
        price = f"{product.price:.2f} €" if product.has_known_price else "-"
        table.add_row(
            product.name,
            product.reference,
            product.supplier_label,
            price,
            _AVAILABILITY_STYLES[product.availability],
        )

    if products:
        console.print(table)
    console.print(f"{len(products)} produit(s) trouvé(s)")
    for result in results:
        if result.error:
            console.print(f"[yellow]{result.supplier}[/yellow]: {result.error}")


async def run(
    args: argparse.Namespace,
    config: Dict[str, Any],
    suppliers: SupplierRegistry,
    console: Console,
) -> List[SearchResult]:
    async with PlaywrightTabPlatform(config) as platform:
        orchestrator = SearchOrchestrator(
            platform, suppliers=suppliers, settings=SearchSettings.from_config(config)
        )
        with console.status(f"Recherche « {args.query} »..."):
            return await orchestrator.search_many(args.suppliers or suppliers.keys(), args.query)


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.query.strip():
        parser.error("query must not be empty")

    setup_logger(
        "",
        level=logging.DEBUG if args.verbose else logging.WARNING,
        log_file=None,
    )
    console = Console(stderr=args.json)

    try:
        config = load_config(str(args.config))
        if args.headless:
            config = {**config, "browser": {**config.get("browser", {}), "headless": True}}
        suppliers = SupplierRegistry.from_config(config)
    except ConfigurationError as exc:
        console.print(f"[red]Configuration error:[/red] {exc}")
        return 2

    for supplier in args.suppliers or []:
        try:
            suppliers.resolve(supplier)
        except UnknownSupplierError as exc:
            parser.error(f"unknown supplier '{exc.supplier}' (choose from: {', '.join(suppliers.keys())})")

    results = asyncio.run(run(args, config, suppliers, console))

    products = merge_results(results)
    if args.json:
        payload = {
            "products": [product.to_dict() for product in products],
            "errors": {r.supplier: r.error for r in results if r.error},
        }
        print(json.dumps(payload, ensure_ascii=False, indent=2))
    else:
        render_table(console, products, results)
    return 0


if __name__ == "__main__":
    sys.exit(main())
