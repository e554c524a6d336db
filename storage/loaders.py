"""
Database loaders - SQLite schema, CSV import, and price history queries.
Thin IO layer; the calculation modules never touch the database directly.
"""

import logging
import sqlite3
import pandas as pd
from datetime import date, datetime
from pathlib import Path
from typing import Dict, Any, List, Optional, Sequence, Union

from analysis.models import PricePoint


logger = logging.getLogger(__name__)


CSV_COLUMNS = {
    'Date': 'date',
    'Open': 'open',
    'High': 'high',
    'Low': 'low',
    'Close': 'close',
    'Volume': 'volume',
    'Marketcap': 'market_cap'
}

MAX_SYMBOL_LENGTH = 10


class CsvImportError(Exception):
    """Raised when a price CSV cannot be read."""
    pass


def init_database(conn: sqlite3.Connection) -> None:
    """
    Initialize database with required tables.
    Idempotent - safe to call multiple times.

    Args:
        conn: SQLite connection
    """
    conn.execute("PRAGMA foreign_keys = ON")

    conn.execute("""
        CREATE TABLE IF NOT EXISTS cryptocurrencies (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            symbol TEXT NOT NULL UNIQUE,
            name TEXT NOT NULL,
            created_at DATETIME NOT NULL
        )
    """)

    conn.execute("""
        CREATE TABLE IF NOT EXISTS price_history (
            crypto_id INTEGER NOT NULL REFERENCES cryptocurrencies(id),
            date DATE NOT NULL,
            open REAL NOT NULL,
            high REAL NOT NULL,
            low REAL NOT NULL,
            close REAL NOT NULL,
            volume REAL NOT NULL,
            market_cap REAL,
            PRIMARY KEY (crypto_id, date)
        )
    """)

    conn.execute("CREATE INDEX IF NOT EXISTS idx_crypto_date ON price_history(crypto_id, date)")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_date ON price_history(date)")

    conn.commit()


def get_connection(db_path: str = './data/crypto.db') -> sqlite3.Connection:
    """
    Get SQLite connection with proper configuration.

    Args:
        db_path: Path to SQLite database file

    Returns:
        Configured SQLite connection
    """
    if db_path != ':memory:':
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path)
    conn.execute("PRAGMA foreign_keys = ON")
    conn.execute("PRAGMA journal_mode = WAL")  # Better concurrency
    return conn


def upsert_cryptocurrency(conn: sqlite3.Connection, symbol: str, name: str) -> int:
    """
    Insert or rename a cryptocurrency, keyed by symbol.

    Returns:
        Cryptocurrency ID
    """
    cursor = conn.execute("SELECT id FROM cryptocurrencies WHERE symbol = ?", (symbol,))
    existing = cursor.fetchone()

    if existing:
        conn.execute("UPDATE cryptocurrencies SET name = ? WHERE id = ?", (name, existing[0]))
        conn.commit()
        return existing[0]

    cursor = conn.execute(
        "INSERT INTO cryptocurrencies (symbol, name, created_at) VALUES (?, ?, ?)",
        (symbol, name, datetime.now().isoformat())
    )
    conn.commit()
    return cursor.lastrowid


def replace_price_history(
    conn: sqlite3.Connection,
    crypto_id: int,
    rows: Union[pd.DataFrame, Sequence[Dict[str, Any]]]
) -> int:
    """
    Replace all stored prices for one cryptocurrency.

    Args:
        conn: SQLite connection
        crypto_id: Cryptocurrency ID
        rows: Canonical price rows (date, open, high, low, close, volume,
            market_cap)

    Returns:
        Number of rows inserted

    Raises:
        sqlite3.Error: If a row cannot be written; stored rows are left as they were
    """
    records = rows.to_dict('records') if isinstance(rows, pd.DataFrame) else list(rows)
    points = [PricePoint.from_row(r) for r in records]

    try:
        conn.execute("DELETE FROM price_history WHERE crypto_id = ?", (crypto_id,))

        # Last row wins for repeated dates within one file
        conn.executemany("""
            INSERT OR REPLACE INTO price_history (
                crypto_id, date, open, high, low, close, volume, market_cap
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """, [
            (crypto_id, p.date.isoformat(), p.open, p.high, p.low, p.close, p.volume, p.market_cap)
            for p in points
        ])
    except sqlite3.Error:
        # Keep the stored history when the new rows cannot be written
        conn.rollback()
        raise

    conn.commit()
    return len(points)


def load_coin_csv(csv_path: Path) -> pd.DataFrame:
    """
    Read one historical price CSV into canonical price rows.

    Expected columns: Date, Open, High, Low, Close, Volume, Marketcap.
    Rows without Date or Close, or with unparseable dates, are dropped.
    Missing Open/High/Low fall back to Close, missing Volume to 0.

    Raises:
        CsvImportError: If the file cannot be parsed or lacks Date/Close
    """
    try:
        raw = pd.read_csv(csv_path)
    except (OSError, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        raise CsvImportError(f"Failed to read {csv_path}: {e}")

    missing = {'Date', 'Close'} - set(raw.columns)
    if missing:
        raise CsvImportError(f"{csv_path} missing required columns: {sorted(missing)}")

    df = raw[[c for c in CSV_COLUMNS if c in raw.columns]].rename(columns=CSV_COLUMNS).copy()
    for column in CSV_COLUMNS.values():
        if column not in df.columns:
            df[column] = None

    df = df.dropna(subset=['date', 'close']).copy()
    df['date'] = pd.to_datetime(df['date'], errors='coerce')
    df = df.dropna(subset=['date']).copy()

    for column in ['open', 'high', 'low', 'close', 'volume', 'market_cap']:
        df[column] = pd.to_numeric(df[column], errors='coerce')

    df = df.dropna(subset=['close']).copy()
    for column in ['open', 'high', 'low']:
        df[column] = df[column].fillna(df['close'])
    df['volume'] = df['volume'].fillna(0.0)

    df['date'] = df['date'].dt.date
    return df.sort_values('date').reset_index(drop=True)


def coin_name_from_path(csv_path: Path) -> str:
    """coin_Bitcoin.csv -> Bitcoin"""
    stem = Path(csv_path).stem
    return stem[len('coin_'):] if stem.startswith('coin_') else stem


def import_csv_directory(conn: sqlite3.Connection, data_dir: Path) -> List[Dict[str, Any]]:
    """
    Import every coin_*.csv file in a directory.

    Each file replaces the stored history of its cryptocurrency. A failing
    file is recorded and the remaining files are still imported.

    Args:
        conn: SQLite connection (schema initialized)
        data_dir: Directory holding coin_<Name>.csv files

    Returns:
        Per-file result dictionaries
    """
    data_dir = Path(data_dir)
    if not data_dir.is_dir():
        raise CsvImportError(f"Data directory not found: {data_dir}")

    results = []

    for csv_path in sorted(data_dir.glob('coin_*.csv')):
        coin_name = coin_name_from_path(csv_path)
        symbol = coin_name.upper()[:MAX_SYMBOL_LENGTH]

        try:
            prices = load_coin_csv(csv_path)
            crypto_id = upsert_cryptocurrency(conn, symbol, coin_name)
            imported = replace_price_history(conn, crypto_id, prices)

            logger.info(f"Imported {imported} rows for {coin_name} from {csv_path.name}")
            results.append({
                'file': csv_path.name,
                'success': True,
                'coin_name': coin_name,
                'symbol': symbol,
                'records_imported': imported
            })

        except (CsvImportError, ValueError, sqlite3.Error) as e:
            logger.error(f"Failed to import {csv_path.name}: {e}")
            results.append({
                'file': csv_path.name,
                'success': False,
                'error': str(e)
            })

    return results


class SQLitePriceRepository:
    """
    Price history queries over the SQLite store.

    This is the collaborator the analysis job is given; any object with the
    same methods can stand in for it.
    """

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def get_cryptocurrencies(self) -> List[Dict[str, Any]]:
        cursor = self.conn.execute("SELECT id, symbol, name FROM cryptocurrencies ORDER BY name")
        return [{'id': r[0], 'symbol': r[1], 'name': r[2]} for r in cursor.fetchall()]

    def get_cryptocurrency(self, crypto_id: int) -> Optional[Dict[str, Any]]:
        cursor = self.conn.execute(
            "SELECT id, symbol, name FROM cryptocurrencies WHERE id = ?", (crypto_id,)
        )
        row = cursor.fetchone()
        return {'id': row[0], 'symbol': row[1], 'name': row[2]} if row else None

    def get_cryptocurrency_by_symbol(self, symbol: str) -> Optional[Dict[str, Any]]:
        cursor = self.conn.execute(
            "SELECT id, symbol, name FROM cryptocurrencies WHERE symbol = ?", (symbol,)
        )
        row = cursor.fetchone()
        return {'id': row[0], 'symbol': row[1], 'name': row[2]} if row else None

    def fetch_price_history(
        self,
        crypto_id: int,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None
    ) -> List[PricePoint]:
        """Date-ordered prices for one cryptocurrency, both bounds inclusive."""
        df = self.fetch_price_rows([crypto_id], start_date, end_date)
        return [PricePoint.from_row(row) for row in df.to_dict('records')]

    def fetch_price_rows(
        self,
        crypto_ids: Sequence[int],
        start_date: Optional[date] = None,
        end_date: Optional[date] = None
    ) -> pd.DataFrame:
        """
        Price rows joined with symbol and name, ordered by date then id.

        An empty crypto_ids sequence selects every cryptocurrency.
        """
        query = """
            SELECT p.crypto_id, c.symbol, c.name, p.date, p.open, p.high, p.low,
                   p.close, p.volume, p.market_cap
            FROM price_history p
            JOIN cryptocurrencies c ON c.id = p.crypto_id
            WHERE 1 = 1
        """
        params: List[Any] = []

        if crypto_ids:
            query += f" AND p.crypto_id IN ({', '.join('?' for _ in crypto_ids)})"
            params.extend(crypto_ids)

        if start_date is not None:
            query += " AND p.date >= ?"
            params.append(start_date.isoformat())

        if end_date is not None:
            query += " AND p.date <= ?"
            params.append(end_date.isoformat())

        query += " ORDER BY p.date ASC, p.crypto_id ASC"

        df = pd.read_sql_query(query, self.conn, params=params)

        if not df.empty:
            df['date'] = pd.to_datetime(df['date']).dt.date

        return df

    def latest_date(self, crypto_ids: Optional[Sequence[int]] = None) -> Optional[date]:
        """Most recent stored date, optionally restricted to some cryptocurrencies."""
        query = "SELECT MAX(date) FROM price_history"
        params: List[Any] = []

        if crypto_ids:
            query += f" WHERE crypto_id IN ({', '.join('?' for _ in crypto_ids)})"
            params.extend(crypto_ids)

        value = self.conn.execute(query, params).fetchone()[0]
        return date.fromisoformat(value) if value else None
