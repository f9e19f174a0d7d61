from __future__ import annotations

import logging
import os
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Tuple

from kalshi_oracle.errors import LedgerError
from kalshi_oracle.models.schemas import LedgerResult, LedgerRow
from kalshi_oracle.ports import LedgerStore

logger = logging.getLogger(__name__)

_COLUMNS = "id, ts, ticker, side, shares, price_cents, result, pnl_cents"


class SQLiteLedger(LedgerStore):
    """Append-only trade ledger. A row's result leaves ``pending`` exactly once."""

    def __init__(self, db_path: str = "data/ledger.db") -> None:
        self.db_path = db_path
        if db_path != ":memory:":
            Path(os.path.dirname(self.db_path) or ".").mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(self.db_path)
        self._create_tables()

    def _create_tables(self) -> None:
        cursor = self.conn.cursor()
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS ledger (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                ts TEXT NOT NULL,
                ticker TEXT NOT NULL,
                side TEXT NOT NULL CHECK (side IN ('YES', 'NO')),
                shares INTEGER NOT NULL,
                price_cents INTEGER NOT NULL,
                result TEXT NOT NULL DEFAULT 'pending'
                    CHECK (result IN ('pending', 'win', 'loss')),
                pnl_cents INTEGER NOT NULL DEFAULT 0
            )
            """
        )
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS bankroll (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                ts INTEGER NOT NULL,
                bankroll_cents INTEGER NOT NULL
            )
            """
        )
        self.conn.commit()

    def ensure_bankroll_initialized(self, initial_cents: int) -> int:
        """Seed the paper bankroll once; later processes keep the stored value."""
        latest = self.get_latest_bankroll()
        if latest is None:
            self.record_bankroll(initial_cents)
            return initial_cents
        return latest

    def get_latest_bankroll(self) -> Optional[int]:
        cursor = self.conn.cursor()
        cursor.execute("SELECT bankroll_cents FROM bankroll ORDER BY id DESC LIMIT 1")
        row = cursor.fetchone()
        if row is None:
            return None
        (bankroll_cents,) = row
        return int(bankroll_cents)

    def record_bankroll(self, bankroll_cents: int, ts_ms: Optional[int] = None) -> None:
        cursor = self.conn.cursor()
        ts_ms = ts_ms or int(datetime.now(timezone.utc).timestamp() * 1000)
        cursor.execute(
            "INSERT INTO bankroll (ts, bankroll_cents) VALUES (?, ?)",
            (ts_ms, int(bankroll_cents)),
        )
        self.conn.commit()

    def append(self, row: LedgerRow) -> int:
        row = LedgerRow.model_validate(row)
        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT INTO ledger (ts, ticker, side, shares, price_cents, result, pnl_cents)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                row.timestamp,
                row.ticker,
                row.side.value,
                row.shares,
                row.price_cents,
                row.result.value,
                row.pnl_cents,
            ),
        )
        self.conn.commit()
        logger.info(
            "Ledger row %s appended: %s %s x%d @ %d¢",
            cursor.lastrowid, row.ticker, row.side.value, row.shares, row.price_cents,
        )
        return int(cursor.lastrowid)

    def settle(self, row_id: int, result: LedgerResult, pnl_cents: int) -> None:
        result = LedgerResult(result)
        if result is LedgerResult.PENDING:
            raise LedgerError("Cannot settle a row back to pending")

        cursor = self.conn.cursor()
        cursor.execute(
            "UPDATE ledger SET result = ?, pnl_cents = ? WHERE id = ? AND result = 'pending'",
            (result.value, pnl_cents, row_id),
        )
        if cursor.rowcount != 1:
            self.conn.rollback()
            raise LedgerError(f"Ledger row {row_id} is missing or already settled")
        self.conn.commit()
        logger.info("Ledger row %s settled: %s %+d¢", row_id, result.value, pnl_cents)

    def fetch_all(self) -> List[LedgerRow]:
        cursor = self.conn.cursor()
        cursor.execute(f"SELECT {_COLUMNS} FROM ledger ORDER BY ts ASC, id ASC")
        return [self._row_to_ledger(row) for row in cursor.fetchall()]

    def fetch_last(self, n: int) -> List[LedgerRow]:
        cursor = self.conn.cursor()
        cursor.execute(
            f"SELECT {_COLUMNS} FROM ledger ORDER BY ts DESC, id DESC LIMIT ?",
            (n,),
        )
        rows = [self._row_to_ledger(row) for row in cursor.fetchall()]
        rows.reverse()
        return rows

    def fetch_pending(self) -> List[LedgerRow]:
        cursor = self.conn.cursor()
        cursor.execute(
            f"SELECT {_COLUMNS} FROM ledger WHERE result = 'pending' ORDER BY ts ASC, id ASC"
        )
        return [self._row_to_ledger(row) for row in cursor.fetchall()]

    def _row_to_ledger(self, row: Tuple) -> LedgerRow:
        row_id, ts, ticker, side, shares, price_cents, result, pnl_cents = row
        return LedgerRow(
            id=row_id,
            timestamp=ts,
            ticker=ticker,
            side=side,
            shares=shares,
            price_cents=price_cents,
            result=result,
            pnl_cents=pnl_cents,
        )

    def close(self) -> None:
        self.conn.close()
