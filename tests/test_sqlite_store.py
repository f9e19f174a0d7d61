import sqlite3

import pytest

from kalshi_oracle.data.sqlite_store import SQLiteLedger
from kalshi_oracle.errors import LedgerError
from kalshi_oracle.models.schemas import LedgerResult, LedgerRow, Side


def make_row(ts="2024-01-01T00:00:01Z", ticker="M1", side="YES", price=40):
    return LedgerRow(timestamp=ts, ticker=ticker, side=side, shares=3, price_cents=price)


def test_append_and_fetch(tmp_path):
    store = SQLiteLedger(str(tmp_path / "ledger.db"))

    first = store.append(make_row(ts="2024-01-01T00:00:01Z"))
    second = store.append(make_row(ts="2024-01-01T00:00:02Z", side="NO"))
    assert second > first

    rows = store.fetch_all()
    assert [r.id for r in rows] == [first, second]
    assert rows[1].side is Side.NO
    assert rows[0].result is LedgerResult.PENDING

    # invalid row rejected before touching the table
    with pytest.raises(ValueError):
        store.append({"timestamp": "x", "ticker": "M1", "side": "MAYBE", "shares": 1, "price_cents": 1})
    assert len(store.fetch_all()) == 2

    store.close()


def test_fetch_last_is_chronological(tmp_path):
    store = SQLiteLedger(str(tmp_path / "ledger.db"))
    for minute in range(5):
        store.append(make_row(ts=f"2024-01-01T00:0{minute}:00Z", price=10 + minute))

    last = store.fetch_last(2)
    assert [r.price_cents for r in last] == [13, 14]
    store.close()


def test_settle_once(tmp_path):
    store = SQLiteLedger(str(tmp_path / "ledger.db"))
    row_id = store.append(make_row())

    store.settle(row_id, LedgerResult.WIN, 180)
    (row,) = store.fetch_all()
    assert row.result is LedgerResult.WIN
    assert row.pnl_cents == 180
    assert store.fetch_pending() == []

    with pytest.raises(LedgerError):
        store.settle(row_id, LedgerResult.LOSS, -120)
    with pytest.raises(LedgerError):
        store.settle(9999, LedgerResult.LOSS, -1)
    assert store.fetch_all()[0].pnl_cents == 180

    store.close()


def test_cannot_settle_to_pending(tmp_path):
    store = SQLiteLedger(str(tmp_path / "ledger.db"))
    row_id = store.append(make_row())
    with pytest.raises(LedgerError):
        store.settle(row_id, LedgerResult.PENDING, 0)
    store.close()


def test_schema_rejects_bad_result(tmp_path):
    store = SQLiteLedger(str(tmp_path / "ledger.db"))
    with pytest.raises(sqlite3.IntegrityError):
        store.conn.execute(
            "INSERT INTO ledger (ts, ticker, side, shares, price_cents, result) VALUES ('t', 'M', 'YES', 1, 1, 'push')"
        )
    store.close()


def test_bankroll_seeded_once(tmp_path):
    db = str(tmp_path / "ledger.db")
    store = SQLiteLedger(db)
    assert store.get_latest_bankroll() is None
    assert store.ensure_bankroll_initialized(1000) == 1000
    store.record_bankroll(750, ts_ms=1)
    store.close()

    store = SQLiteLedger(db)
    assert store.ensure_bankroll_initialized(1000) == 750
    assert store.get_latest_bankroll() == 750
