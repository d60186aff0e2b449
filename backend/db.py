from __future__ import annotations

import csv
import io
import sqlite3
import threading
from typing import Iterable, List, Optional

from motion.service import VerdictRecord

VERDICT_KEYS = ["timestamp", "motion_detected", "changed_fraction", "threshold", "fps"]


class Database:
    def __init__(self, path: str):
        self.path = path
        self.conn = sqlite3.connect(self.path, check_same_thread=False)
        self.lock = threading.Lock()
        self._init_db()

    def _init_db(self) -> None:
        with self.lock:
            cur = self.conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS verdicts (
                    ts REAL,
                    motion_detected INTEGER,
                    changed_fraction REAL,
                    threshold INTEGER,
                    fps REAL
                );
                """
            )
            cur.execute("CREATE INDEX IF NOT EXISTS idx_verdicts_ts ON verdicts(ts);")
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS events (
                    ts REAL,
                    type TEXT,
                    details TEXT
                );
                """
            )
            cur.execute("CREATE INDEX IF NOT EXISTS idx_events_ts ON events(ts);")
            self.conn.commit()

    def close(self) -> None:
        with self.lock:
            self.conn.close()

    def log_verdict(self, record: VerdictRecord) -> None:
        with self.lock:
            cur = self.conn.cursor()
            cur.execute(
                """
                INSERT INTO verdicts (ts, motion_detected, changed_fraction, threshold, fps)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    record.timestamp,
                    int(record.motion_detected),
                    record.changed_fraction,
                    record.threshold,
                    record.fps,
                ),
            )
            self.conn.commit()

    def log_event(self, event_type: str, ts: float, details: Optional[str] = None) -> None:
        with self.lock:
            cur = self.conn.cursor()
            cur.execute(
                "INSERT INTO events (ts, type, details) VALUES (?, ?, ?)",
                (ts, event_type, details or ""),
            )
            self.conn.commit()

    def history(self, start_ts: float, end_ts: float) -> List[dict]:
        with self.lock:
            cur = self.conn.cursor()
            cur.execute(
                """
                SELECT ts, motion_detected, changed_fraction, threshold, fps
                FROM verdicts WHERE ts BETWEEN ? AND ? ORDER BY ts ASC
                """,
                (start_ts, end_ts),
            )
            rows = cur.fetchall()
        records = [dict(zip(VERDICT_KEYS, row)) for row in rows]
        for record in records:
            record["motion_detected"] = bool(record["motion_detected"])
        return records

    def events(self, start_ts: float, end_ts: float) -> List[dict]:
        with self.lock:
            cur = self.conn.cursor()
            cur.execute(
                "SELECT ts, type, details FROM events WHERE ts BETWEEN ? AND ? ORDER BY ts ASC",
                (start_ts, end_ts),
            )
            rows = cur.fetchall()
        keys = ["timestamp", "type", "details"]
        return [dict(zip(keys, row)) for row in rows]

    def export_csv(self, start_ts: float, end_ts: float) -> Iterable[bytes]:
        yield ",".join(VERDICT_KEYS).encode() + b"\n"
        for row in self.history(start_ts, end_ts):
            buf = io.StringIO()
            writer = csv.DictWriter(buf, fieldnames=VERDICT_KEYS)
            writer.writerow(row)
            yield buf.getvalue().encode()
