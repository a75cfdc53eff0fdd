from __future__ import annotations

import csv
from collections.abc import Iterable
from pathlib import Path

from openpyxl import Workbook

from halo.store.sqlite import SqliteStore

TABLES = ["campaigns", "leads", "jobs"]


def export_excel(store: SqliteStore, out_path: Path, contractor_id: str | None = None) -> None:
    out_path.parent.mkdir(parents=True, exist_ok=True)
    wb = Workbook()
    wb.remove(wb.active)

    for table in TABLES:
        ws = wb.create_sheet(title=table)
        _write_sheet(ws, _table_rows(store, table, contractor_id))

    wb.save(out_path)


def export_csv_tables(store: SqliteStore, out_dir: Path, contractor_id: str | None = None) -> None:
    out_dir.mkdir(parents=True, exist_ok=True)
    for table in TABLES:
        rows = _table_rows(store, table, contractor_id)
        headers = list(rows[0].keys()) if rows else []
        csv_path = out_dir / f"{table}.csv"
        with csv_path.open("w", newline="", encoding="utf-8") as handle:
            writer = csv.writer(handle)
            writer.writerow(headers)
            for row in rows:
                writer.writerow([row[h] for h in headers])


def _table_rows(store: SqliteStore, table: str, contractor_id: str | None) -> list:
    if contractor_id is None:
        return store.fetch_all(f"SELECT * FROM {table}")
    if table == "campaigns":
        return store.fetch_all("SELECT * FROM campaigns WHERE contractor_id = ?", (contractor_id,))
    return store.fetch_all(
        f"SELECT {table}.* FROM {table} JOIN campaigns "
        f"ON {table}.campaign_id = campaigns.campaign_id WHERE campaigns.contractor_id = ?",
        (contractor_id,),
    )


def _write_sheet(ws, rows: Iterable) -> None:
    rows = list(rows)
    if not rows:
        return
    headers = list(rows[0].keys())
    ws.append(headers)
    for row in rows:
        ws.append([row[h] for h in headers])
