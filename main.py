#!/usr/bin/env python3
"""
Invoice Lens - Main Entry Point.

Extracts invoice fields from PDFs and images with hosted vision models
(Anthropic first, Gemini as fallback) and exports the results to Excel.

Usage:
    Command Line:
        python main.py --input invoice.pdf --output results.xlsx
        python main.py --input ./invoices/ --no-excel

    Python:
        from main import run_extraction
        saved, failures = asyncio.run(run_extraction([Path("invoice.pdf")]))

Credentials:
    ANTHROPIC_API_KEY and/or GEMINI_API_KEY must be set.
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Dict, List, Optional, Tuple

# Add project root to path for imports
PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

from config import ConfigurationManager, get_config
from invoice_lens.utils.logger import setup_logger_from_config, get_logger
from invoice_lens.utils.helpers import collect_files
from invoice_lens.utils.exceptions import InvoiceExtractionError
from invoice_lens.session import InvoiceSession, SavedInvoice

DEFAULT_EXTENSIONS = [".pdf", ".jpg", ".jpeg", ".png", ".webp", ".gif"]


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Returns:
        Parsed argument namespace.
    """
    parser = argparse.ArgumentParser(
        description="Invoice Lens - vision-model invoice extraction",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    Process single invoice:
        python main.py --input invoice.pdf --output results.xlsx

    Process directory without Excel output:
        python main.py --input ./invoices/ --no-excel
        """
    )

    parser.add_argument(
        "--input", "-i",
        type=str,
        required=True,
        help="Input file or directory containing invoices"
    )

    parser.add_argument(
        "--output", "-o",
        type=str,
        default=None,
        help="Excel output file (default: outputs/invoices_<date>.xlsx)"
    )

    parser.add_argument(
        "--config", "-c",
        type=str,
        default=None,
        help="Path to custom configuration file"
    )

    parser.add_argument(
        "--no-excel",
        action="store_true",
        help="Disable Excel output"
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging"
    )

    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Only log warnings and errors"
    )

    return parser.parse_args(argv)


def initialize_system(args: argparse.Namespace) -> ConfigurationManager:
    """
    Load configuration and set up logging.

    Args:
        args: Parsed command-line arguments.

    Returns:
        Initialized configuration manager.
    """
    config = ConfigurationManager(args.config)

    level = None
    if args.debug:
        level = "DEBUG"
    elif args.quiet:
        level = "WARNING"

    logger = setup_logger_from_config(level)

    logger.info("=" * 60)
    logger.info("INVOICE LENS")
    logger.info("=" * 60)
    logger.info(f"Version: {config.get('project.version', '1.0.0')}")
    logger.info(f"Input: {args.input}")

    return config


async def run_extraction(
    files: List[Path],
    session: Optional[InvoiceSession] = None
) -> Tuple[List[SavedInvoice], Dict[str, str]]:
    """
    Extract every file through an InvoiceSession.

    Files are queued in batches of the session's max_files; each batch is
    extracted concurrently, successful items are saved and failed items
    are removed before the next batch.

    Args:
        files: Documents to process.
        session: Session to use. If None, a default one is created.

    Returns:
        (saved invoices, {file name: failure message})
    """
    logger = get_logger(__name__)
    session = session or InvoiceSession()
    failures: Dict[str, str] = {}

    for start in range(0, len(files), session.max_files):
        batch = files[start:start + session.max_files]

        for path in batch:
            session.add(path.name, path.read_bytes())

        for item in await session.extract_all():
            if item.record is not None and item.error is None:
                logger.info(
                    f"{item.file_name}: invoice {item.record.invoice_no or 'N/A'} "
                    f"via {item.provider_id}, "
                    f"{len(item.record.extracted_fields)}/{len(item.record.fields)} fields"
                )
                session.save(item.item_id)
            else:
                failures[item.file_name] = item.error or "extraction failed"
                session.remove(item.item_id)

    return session.saved, failures


def print_summary(saved: List[SavedInvoice], failures: Dict[str, str]) -> None:
    """Print one line per processed file."""
    for invoice in saved:
        record = invoice.record
        print(
            f"OK    {invoice.file_name}: {record.invoice_no or '-'} | "
            f"{record.vendor_name or '-'} | {record.amount or '-'} {record.currency}".rstrip()
        )
    for file_name, message in failures.items():
        first_line = message.splitlines()[0] if message else ""
        print(f"FAIL  {file_name}: {first_line}")


def export_results(session: InvoiceSession, output: Optional[str] = None) -> str:
    """Export the session's saved invoices to --output, or the configured default."""
    if not output:
        return session.export()

    output_path = Path(output)
    return session.export(filename=output_path.name, output_dir=str(output_path.parent))


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main function - entry point for command-line execution.

    Returns:
        Exit code: 0 if at least one file succeeded, 1 otherwise,
        130 when interrupted.
    """
    try:
        args = parse_arguments(argv)

        initialize_system(args)
        logger = get_logger(__name__)

        extensions = get_config("input.supported_extensions", DEFAULT_EXTENSIONS)
        input_files = collect_files(args.input, extensions)

        if not input_files:
            logger.error(f"No supported files found in: {args.input}")
            return 1

        logger.info(f"Found {len(input_files)} file(s) to process")

        session = InvoiceSession()
        saved, failures = asyncio.run(run_extraction(input_files, session))

        if not args.quiet:
            print_summary(saved, failures)

        if saved and not args.no_excel and get_config("output.excel.enabled", True):
            output_path = export_results(session, args.output)
            logger.info(f"Excel output: {output_path}")

        logger.info("=" * 60)
        logger.info(
            f"Extraction complete. {len(saved)} succeeded, {len(failures)} failed."
        )
        logger.info("=" * 60)

        return 0 if saved else 1

    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    except InvoiceExtractionError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    except KeyboardInterrupt:
        print("\nOperation cancelled by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
