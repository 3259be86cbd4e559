"""
Command-line interface for Smart Bill.
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from . import __version__
from .billing import BillingResult, ItemLine, ValidationFailure, calculate_from_payload
from .billing.presets import default_registry
from .utils.config import Config
from .utils.logging import setup_logging


def create_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser."""
    parser = argparse.ArgumentParser(
        description="Smart Bill - itemized bill calculation from JSON payloads",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  smart-bill --version
  smart-bill calculate --payload bill.json
  smart-bill calculate --payload bill.json --format json
  smart-bill presets
        """,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"Smart Bill {__version__}",
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging",
    )

    parser.add_argument(
        "--log-file",
        help="Log file path",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        help="Available commands",
    )

    calculate_parser = subparsers.add_parser(
        "calculate",
        help="Calculate a bill from a JSON payload",
    )
    calculate_parser.add_argument(
        "--payload",
        type=str,
        required=True,
        help="Path to the JSON payload ('-' reads stdin)",
    )
    calculate_parser.add_argument(
        "--format",
        choices=["table", "json"],
        default="table",
        help="Output format (default: table)",
    )
    calculate_parser.add_argument(
        "--env-file",
        help="Optional .env file with BILLING_* defaults",
    )

    subparsers.add_parser(
        "presets",
        help="List the available tax presets",
    )

    return parser


def load_payload(path: str) -> Dict[str, Any]:
    """Read a payload from a file path, or stdin for '-'."""
    if path == "-":
        return json.load(sys.stdin)
    with Path(path).open(encoding="utf-8") as handle:
        return json.load(handle)


def print_boxed(lines: List[Tuple[str, Any]]) -> None:
    """Print label/value pairs inside a box."""
    label_width = max(len(lbl) for lbl, _ in lines)
    inner_width = max(len(f" {lbl.ljust(label_width)} : {val}") for lbl, val in lines)
    print("┌" + "─" * inner_width + "┐")
    for lbl, val in lines:
        line = f" {lbl.ljust(label_width)} : {val}"
        padding = inner_width - len(line)
        print(f"│{line + ' ' * padding}│")
    print("└" + "─" * inner_width + "┘")


def _print_item(line: ItemLine, indent: str = "   ") -> None:
    exempt = " [tax exempt]" if line.tax_exempt else ""
    print(f"{indent}{line.name} (ID: {line.id}){exempt}")
    print(f"{indent}   Qty: {line.quantity}  Unit: {line.unit_price}  "
          f"Gross: {line.gross_total}  Discount: {line.discount}  Total: {line.total}")
    if line.taxable_amount is not None:
        print(f"{indent}   Taxable: {line.taxable_amount}")
    for child in line.add_ons + line.variations:
        _print_item(child, indent + "   ")


def print_result(result: BillingResult) -> None:
    """Render a result as boxed summary plus breakdown sections."""
    header = [
        ("Billing ID", result.billing_id),
        ("Created", result.created_at),
        ("Currency", result.currency),
        ("Total", result.total),
    ]
    print_boxed(header)

    print("\nITEMS:")
    print("=" * 60)
    for line in result.item_lines:
        _print_item(line)

    if result.discounts:
        print("\nDISCOUNTS:")
        print("=" * 60)
        for discount in result.discounts:
            print(f"   {discount.id:<20}{discount.kind:<10}{discount.amount:>14}")

    if result.charges:
        print("\nCHARGES:")
        print("=" * 60)
        for charge in result.charges:
            print(f"   {charge.name:<20}{charge.base:<18}{charge.amount:>14}")

    if result.taxes:
        print("\nTAXES:")
        print("=" * 60)
        for tax in result.taxes:
            notes = []
            if tax.inclusive:
                notes.append("inclusive")
            if tax.compound:
                notes.append("compound")
            if tax.below_threshold:
                notes.append("below threshold")
            if not tax.enabled:
                notes.append("disabled")
            note = f" ({', '.join(notes)})" if notes else ""
            print(f"   {tax.name:<20}{str(tax.rate) + '%':<10}{tax.amount:>14}{note}")

    if result.converted_totals:
        print("\nCONVERTED TOTALS:")
        print("=" * 60)
        for code, amount in sorted(result.converted_totals.items()):
            print(f"   {code:<10}{amount:>14}")

    print("\nFORMULA:")
    print("=" * 60)
    for step in result.formula_steps:
        print(f"   {step}")


def calculate_bill(payload_path: str, output_format: str = "table",
                   env_file: Optional[str] = None) -> int:
    """
    Calculate a bill from a payload file and print it.

    Args:
        payload_path: Path to the JSON payload ('-' for stdin)
        output_format: "table" or "json"
        env_file: Optional .env file with BILLING_* defaults

    Returns:
        Exit code
    """
    config = Config(env_file) if env_file else None
    payload = load_payload(payload_path)
    try:
        result = calculate_from_payload(payload, config=config)
    except ValidationFailure as e:
        print(f"\nVALIDATION FAILED: {e.field or 'payload'}")
        print(f"   {e.message}")
        return 1

    if output_format == "json":
        print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
    else:
        print_result(result)
    return 0


def list_presets() -> int:
    """Print every registered tax preset with its rules."""
    for name in default_registry.names():
        print(f"{name}:")
        for rule in default_registry.resolve(name):
            kind = "inclusive" if rule.inclusive else "exclusive"
            print(f"   {rule.name:<12}{str(rule.rate) + '%':<8}{kind:<10}{rule.base.value}")
    return 0


def main(args: Optional[list] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        args: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    parsed_args = parser.parse_args(args)

    log_level = "DEBUG" if parsed_args.verbose else "INFO"
    # Keep stdout for the JSON document
    json_output = getattr(parsed_args, "format", None) == "json"
    logger = setup_logging(
        level=log_level,
        log_file=parsed_args.log_file,
        stream=sys.stderr if json_output else sys.stdout,
    )

    try:
        if parsed_args.command == "calculate":
            return calculate_bill(
                payload_path=parsed_args.payload,
                output_format=parsed_args.format,
                env_file=parsed_args.env_file,
            )

        elif parsed_args.command == "presets":
            return list_presets()

        elif not parsed_args.command:
            parser.print_help()
            return 1

    except Exception as e:
        logger.error(f"Error: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
