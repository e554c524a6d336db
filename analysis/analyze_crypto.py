#!/usr/bin/env python3
"""
CLI tool for importing price CSVs and running crypto analyses.
Usage: python analysis/analyze_crypto.py COMMAND [options]
"""

import os
import sys
import logging
import argparse
from pathlib import Path
from typing import Dict, Any, List, Optional

from dotenv import load_dotenv

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from analysis.analysis_job import run_analysis
from storage.loaders import (
    get_connection,
    init_database,
    import_csv_directory,
    SQLitePriceRepository,
    CsvImportError
)

# Load environment variables
load_dotenv()


DEFAULT_DAYS = {
    'trends': 90,
    'volatility': 90,
    'correlations': 90,
    'seasonal': 730,
    'dominance': 365,
    'predictions': 365
}


def _parse_ids(value: str) -> List[int]:
    try:
        return [int(v) for v in value.split(',') if v.strip()]
    except ValueError:
        raise argparse.ArgumentTypeError(f"Expected comma-separated integer IDs, got '{value}'")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Historical cryptocurrency analytics',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python analysis/analyze_crypto.py import --data-dir ./data/raw
  python analysis/analyze_crypto.py list
  python analysis/analyze_crypto.py volatility --ids 1,2,3 --days 180
  python analysis/analyze_crypto.py seasonal 1
  python analysis/analyze_crypto.py predictions 1 --quiet
        """
    )

    parser.add_argument('--db-path',
                        default=os.getenv('CRYPTO_DB_PATH', './data/crypto.db'),
                        help='Path to SQLite database (default: $CRYPTO_DB_PATH or ./data/crypto.db)')
    parser.add_argument('--quiet', '-q',
                        action='store_true',
                        help='Minimal output (just success/failure)')

    subparsers = parser.add_subparsers(dest='command', required=True)

    import_parser = subparsers.add_parser('import', help='Import coin_*.csv price files')
    import_parser.add_argument('--data-dir',
                               default=os.getenv('CRYPTO_DATA_DIR', './data/raw'),
                               help='Directory with coin_<Name>.csv files')

    subparsers.add_parser('list', help='List stored cryptocurrencies')

    for name in ('trends', 'volatility', 'correlations'):
        sub = subparsers.add_parser(name, help=f'{name.capitalize()} across cryptocurrencies')
        sub.add_argument('--ids', type=_parse_ids, help='Comma-separated cryptocurrency IDs')
        _add_common_options(sub, name)
        if name == 'correlations':
            sub.add_argument('--limit', type=int, default=20, help='Strongest pairs to report')

    for name in ('seasonal', 'predictions'):
        sub = subparsers.add_parser(name, help=f'{name.capitalize()} for one cryptocurrency')
        sub.add_argument('crypto_id', type=int, help='Cryptocurrency ID (see list)')
        _add_common_options(sub, name)

    dominance = subparsers.add_parser('dominance', help='Bitcoin market-cap dominance')
    _add_common_options(dominance, 'dominance')

    return parser


def _add_common_options(sub: argparse.ArgumentParser, name: str) -> None:
    sub.add_argument('--days', type=int, default=DEFAULT_DAYS[name],
                     help=f'Window length in days (default: {DEFAULT_DAYS[name]})')
    sub.add_argument('--output',
                     help='Output JSON path (default: $CRYPTO_OUTPUT_DIR/<analysis>.json)')


def _analysis_params(args: argparse.Namespace) -> Dict[str, Any]:
    params: Dict[str, Any] = {'days': args.days}

    if args.command in ('trends', 'volatility', 'correlations'):
        params['crypto_ids'] = args.ids
    if args.command == 'correlations':
        params['limit'] = args.limit
    if args.command in ('seasonal', 'predictions'):
        params['crypto_id'] = args.crypto_id

    return params


def _output_path(args: argparse.Namespace) -> Path:
    if args.output:
        return Path(args.output)

    output_dir = Path(os.getenv('CRYPTO_OUTPUT_DIR', './data/processed/analysis'))
    suffix = f"_{args.crypto_id}" if hasattr(args, 'crypto_id') else ''
    return output_dir / f"{args.command}{suffix}.json"


def _log_level() -> str:
    """LOG_LEVEL name, or WARNING when the name is not a logging level."""
    name = os.getenv('LOG_LEVEL', 'WARNING').strip().upper()
    if isinstance(logging.getLevelName(name), int):
        return name

    print(f"⚠️  Unknown LOG_LEVEL '{name}', using WARNING", file=sys.stderr)
    return 'WARNING'


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=_log_level(),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )

    if args.command != 'import' and not Path(args.db_path).exists():
        print(f"❌ Database not found: {args.db_path}", file=sys.stderr)
        print("💡 Import price data first: python analysis/analyze_crypto.py import", file=sys.stderr)
        return 1

    conn = get_connection(args.db_path)

    try:
        init_database(conn)

        if args.command == 'import':
            return _run_import(conn, args)

        repo = SQLitePriceRepository(conn)

        if args.command == 'list':
            for crypto in repo.get_cryptocurrencies():
                print(f"{crypto['id']:>4}  {crypto['symbol']:<10}  {crypto['name']}")
            return 0

        if not args.quiet:
            print(f"🔍 Running {args.command} analysis")
            print(f"📊 Database: {args.db_path}")
            print(f"📅 Window: {args.days} days")
            print()

        result = run_analysis(repo, args.command, _output_path(args), **_analysis_params(args))

        if result['status'] == 'completed':
            if not args.quiet:
                print("✅ Analysis completed successfully!")
                print(f"⏱️  Duration: {result['duration_seconds']:.1f}s")
                print(f"💾 Results saved to: {result['output_path']}")
                print()
                _show_quick_summary(args.command, result['result'])
            else:
                print(f"✅ {args.command} analysis complete: {result['output_path']}")
            return 0

        print(f"❌ Analysis failed: {result['error_message']}", file=sys.stderr)
        return 1

    finally:
        conn.close()


def _run_import(conn, args: argparse.Namespace) -> int:
    try:
        results = import_csv_directory(conn, Path(args.data_dir))
    except CsvImportError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1

    succeeded = [r for r in results if r['success']]
    failed = [r for r in results if not r['success']]

    if not args.quiet:
        for r in succeeded:
            print(f"✅ {r['file']}: {r['records_imported']} rows ({r['symbol']})")
        for r in failed:
            print(f"❌ {r['file']}: {r['error']}", file=sys.stderr)

    print(f"📦 Processed {len(results)} files: {len(succeeded)} imported, {len(failed)} failed")
    return 0 if not failed else 1


def _show_quick_summary(command: str, result: Dict[str, Any]) -> None:
    """Show a few headline numbers for the finished analysis."""
    print("📋 Quick Summary:")

    if command == 'predictions':
        prediction = result['prediction']
        print(f"   Current Price: ${prediction['current_price']:,.2f}")
        print(f"   7-Day Change: {prediction['predicted_change_percent']:+.2f}%")
        print(f"   Trend: {prediction['trend']}")
        for signal in prediction['signals']:
            print(f"   • {signal}")

    elif command == 'dominance':
        stats = result['stats']
        print(f"   Current Dominance: {stats['current']:.1f}% ({stats['trend']})")
        print(f"   Range: {stats['min']:.1f}% - {stats['max']:.1f}%")

    elif command == 'seasonal':
        best = result['insights']['best_month']
        worst = result['insights']['worst_month']
        if best and worst:
            print(f"   Best Month: {best['month_name']} ({best['data']['average_return'] * 100:+.2f}% avg)")
            print(f"   Worst Month: {worst['month_name']} ({worst['data']['average_return'] * 100:+.2f}% avg)")

    elif command == 'volatility':
        for item in result['volatility'][:5]:
            print(f"   {item.get('symbol', item['crypto_id'])}: {item['volatility']['annualized'] * 100:.1f}% annualized")

    elif command == 'correlations':
        for item in result['strongest_correlations'][:5]:
            print(f"   {item['crypto1'].get('symbol')} / {item['crypto2'].get('symbol')}: {item['correlation']:+.3f}")

    elif command == 'trends':
        for item in result['trends']:
            print(f"   {item.get('symbol', item['crypto_id'])}: {item['summary']['percent_change']:+.2f}%")

    print()


if __name__ == '__main__':
    sys.exit(main())
