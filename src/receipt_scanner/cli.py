"""Command-line interface for offline receipt scanning."""

import asyncio
import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import click
from tqdm import tqdm

from .config import ENGINE_CHOICES, ScannerConfig
from .errors import ScanError
from .export import ExcelExporter
from .models import ExtractedReceipt
from .review import ReviewQueue, confidence_tier
from .scanner import ReceiptScanner

# Set up logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout)
    ]
)
logger = logging.getLogger(__name__)

DEFAULT_STORE_PATH = Path.home() / '.receipt_scanner' / 'learned_merchants.json'
IMAGE_SUFFIXES = {'.png', '.jpg', '.jpeg', '.webp', '.bmp', '.tif', '.tiff'}


def build_config(config_path: Optional[Path], store: Optional[Path], engine: Optional[str]) -> ScannerConfig:
    config = ScannerConfig.from_yaml(config_path) if config_path else ScannerConfig()
    config = config.override(store_path=store, engine=engine)
    if config.store_path is None:
        config = config.override(store_path=DEFAULT_STORE_PATH)
    return config


def make_scanner(config: ScannerConfig) -> ReceiptScanner:
    return ReceiptScanner(config)


def find_receipt_files(input_dir: Path) -> List[Path]:
    """Find all receipt images in the input directory and its subdirectories."""
    receipt_files = sorted(p for p in input_dir.rglob('*')
                           if p.is_file() and p.suffix.lower() in IMAGE_SUFFIXES)
    logger.info(f"Found {len(receipt_files)} receipt images in {input_dir}")
    return receipt_files


async def scan_batch(scanner: ReceiptScanner, files: List[Path],
                     max_workers: int) -> List[Tuple[Path, Optional[ExtractedReceipt], Optional[str]]]:
    """Scan files concurrently; returns (path, receipt or None, error or None) in input order."""
    semaphore = asyncio.Semaphore(max_workers)
    progress = tqdm(total=len(files), desc="Scanning receipts", unit="file")

    async def scan_one(path: Path):
        async with semaphore:
            try:
                receipt = await scanner.scan_receipt(path)
                return path, receipt, None
            except (ScanError, ValueError) as e:
                logger.error(f"Failed to scan {path.name}: {e}")
                return path, None, str(e)
            except Exception as e:
                logger.exception(f"Unexpected error scanning {path.name}: {e}")
                return path, None, str(e)
            finally:
                progress.update(1)

    try:
        return await asyncio.gather(*(scan_one(path) for path in files))
    finally:
        progress.close()


@click.group()
@click.option('--config', 'config_path', type=click.Path(exists=True, dir_okay=False, path_type=Path),
              help='YAML file with scanner settings')
@click.option('--store', type=click.Path(dir_okay=False, path_type=Path),
              help='JSON file holding learned merchants')
@click.option('--engine', type=click.Choice(ENGINE_CHOICES), help='OCR engine selection')
@click.option('--debug', is_flag=True, help='Enable debug output')
@click.pass_context
def cli(ctx, config_path: Optional[Path], store: Optional[Path], engine: Optional[str], debug: bool):
    """Offline receipt scanner - extract merchant, totals, date and category from receipt photos."""
    if debug:
        logging.getLogger().setLevel(logging.DEBUG)
    try:
        ctx.obj = build_config(config_path, store, engine)
    except (ValueError, OSError) as e:
        raise click.BadParameter(str(e), param_hint='--config')


@cli.command()
@click.argument('image', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option('--progress', 'show_progress', is_flag=True, help='Print progress milestones to stderr')
@click.pass_obj
def scan(config: ScannerConfig, image: Path, show_progress: bool):
    """
    Scan one receipt image and print the extracted fields as JSON.

    Example:
        receipts scan ./receipt.jpg
    """
    def on_progress(percent: int, status: str):
        click.echo(f"[{percent:3d}%] {status}", err=True)

    try:
        scanner = make_scanner(config)
        receipt = asyncio.run(scanner.scan_receipt(image, on_progress if show_progress else None))
    except (ScanError, ValueError) as e:
        logger.error(f"Scan failed: {e}")
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    result = receipt.to_dict()
    result['merchant_tier'] = confidence_tier(receipt.merchant_confidence).value
    result['overall_tier'] = confidence_tier(receipt.overall_confidence).value
    click.echo(json.dumps(result, ensure_ascii=False, indent=2))


@cli.command()
@click.option('--in', 'input_dir', required=True, type=click.Path(exists=True, file_okay=False, path_type=Path),
              help='Input directory containing receipt images')
@click.option('--out', 'output_dir', required=True, type=click.Path(file_okay=False, path_type=Path),
              help='Output directory for results')
@click.option('--max-workers', default=4, type=click.IntRange(min=1),
              help='Maximum number of concurrent scans')
@click.option('--summary/--no-summary', default=True, help='Include the category summary in the Excel output')
@click.pass_obj
def batch(config: ScannerConfig, input_dir: Path, output_dir: Path, max_workers: int, summary: bool):
    """
    Scan a folder of receipt images and export the results to Excel.

    Example:
        receipts batch --in ./receipts --out ./out
    """
    try:
        files = find_receipt_files(input_dir)
        if not files:
            click.echo(f"No receipt images found in {input_dir}", err=True)
            sys.exit(1)

        output_dir.mkdir(parents=True, exist_ok=True)
        scanner = make_scanner(config)
        results = asyncio.run(scan_batch(scanner, files, max_workers))

        review_queue = ReviewQueue(classifier=scanner.classifier)
        scans = []
        failures = []
        json_results: List[Dict[str, Any]] = []
        for path, receipt, error in results:
            if receipt is None:
                failures.append((path, error))
                json_results.append({'file_name': path.name, 'error': error})
                continue
            scans.append((str(path), receipt))
            review_queue.add_from_extraction(str(path), receipt)
            json_results.append({'file_name': path.name, **receipt.to_dict()})

        review_queue.items.extend(review_queue.detect_duplicates(scans))

        timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
        excel_path = output_dir / f"receipts_{timestamp}.xlsx"
        ExcelExporter(excel_path).export_scans(scans, review_queue.items, include_summary=summary)

        json_path = output_dir / f"receipts_{timestamp}.json"
        with open(json_path, 'w', encoding='utf-8') as f:
            json.dump(json_results, f, ensure_ascii=False, indent=2)

        click.echo("\n" + "=" * 50)
        click.echo("SCAN SUMMARY")
        click.echo("=" * 50)
        click.echo(f"Images found: {len(files)}")
        click.echo(f"Scanned: {len(scans)}")
        click.echo(f"Failed: {len(failures)}")
        click.echo(f"Items needing review: {len(review_queue.items)}")
        click.echo("\nOutput files:")
        click.echo(f"  - Excel: {excel_path}")
        click.echo(f"  - JSON: {json_path}")
        for path, error in failures[:10]:
            click.echo(f"  ! {path.name}: {error}")

    except (ScanError, OSError) as e:
        logger.error(f"Batch processing failed: {e}")
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@cli.command()
@click.option('--name', required=True, help='Correct merchant name')
@click.option('--category', required=True, help='Category to associate with the merchant')
@click.option('--original', default=None, help='Merchant name as the scanner read it')
@click.pass_obj
def learn(config: ScannerConfig, name: str, category: str, original: Optional[str]):
    """Teach the scanner a merchant's category."""
    scanner = make_scanner(config)
    scanner.record_correction(original, name, category)
    click.echo(f"Learned: {name.strip().lower()} -> {category}")


@cli.command()
@click.pass_obj
def learned(config: ScannerConfig):
    """List learned merchants, most used first."""
    merchants = make_scanner(config).learning_store.merchants()
    if not merchants:
        click.echo("No learned merchants yet.")
        return
    for merchant in merchants:
        last_used = merchant.last_used.strftime('%Y-%m-%d') if merchant.last_used else '-'
        click.echo(f"{merchant.name:<30} {merchant.category:<25} {merchant.times_used:>4}x  {last_used}")


@cli.command()
@click.option('--yes', is_flag=True, help='Do not ask for confirmation')
@click.pass_obj
def forget(config: ScannerConfig, yes: bool):
    """Clear every learned merchant."""
    if not yes and not click.confirm("Forget all learned merchants?"):
        click.echo("Aborted.")
        return
    make_scanner(config).clear_learned_merchants()
    click.echo("Learned merchants cleared.")


if __name__ == '__main__':
    cli()
