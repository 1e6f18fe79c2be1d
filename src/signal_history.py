"""
SIGNAL HISTORY
==============

Historique des derniers signaux (SQLite), limité aux N plus récents.
"""

import os
import sqlite3
from datetime import datetime
from typing import Dict, List

from config import SIGNAL_HISTORY_DB, SIGNAL_HISTORY_LIMIT
from utils.logger import get_logger

from src.models.signal_types import SignalType, AnalysisResult

logger = get_logger("SIGNAL_HISTORY")


class SignalHistory:
    """
    Recent analysis results

    Usage:
        history = SignalHistory()
        history.add(result)
        history.recent(10)
        history.stats()
    """

    def __init__(self, db_path: str = SIGNAL_HISTORY_DB, limit: int = SIGNAL_HISTORY_LIMIT):
        if limit < 1:
            raise ValueError(f"limit must be >= 1, got {limit}")

        self.db_path = db_path
        self.limit = limit
        self._init_db()

    def _init_db(self):
        """Initialize database"""
        directory = os.path.dirname(self.db_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        self.conn = sqlite3.connect(self.db_path, check_same_thread=False)

        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS signals (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                signal TEXT NOT NULL,
                confidence REAL NOT NULL,
                analysis TEXT,
                created_at TEXT NOT NULL
            )
        """)
        self.conn.commit()

    def add(self, result: AnalysisResult):
        """Store a result and keep only the newest `limit` rows"""
        self.conn.execute(
            "INSERT INTO signals (signal, confidence, analysis, created_at) VALUES (?, ?, ?, ?)",
            (result.signal.value, result.confidence, result.analysis, result.timestamp.isoformat()),
        )
        self.conn.execute("""
            DELETE FROM signals WHERE id NOT IN (
                SELECT id FROM signals ORDER BY id DESC LIMIT ?
            )
        """, (self.limit,))
        self.conn.commit()
        logger.debug(f"Saved {result.signal.value} ({result.confidence}%) to history")

    def recent(self, n: int = 10) -> List[AnalysisResult]:
        """Newest first"""
        cursor = self.conn.execute(
            "SELECT signal, confidence, analysis, created_at FROM signals ORDER BY id DESC LIMIT ?",
            (n,),
        )
        return [
            AnalysisResult(
                signal=SignalType(row[0]),
                confidence=row[1],
                analysis=row[2] or "",
                timestamp=datetime.fromisoformat(row[3]),
            )
            for row in cursor.fetchall()
        ]

    def stats(self) -> Dict:
        """Counts per signal and average confidence"""
        counts = {s.value: 0 for s in SignalType}
        for signal, count in self.conn.execute(
            "SELECT signal, COUNT(*) FROM signals GROUP BY signal"
        ).fetchall():
            counts[signal] = count

        avg = self.conn.execute("SELECT AVG(confidence) FROM signals").fetchone()[0]
        total = sum(counts.values())

        return {
            "total": total,
            "by_signal": counts,
            "avg_confidence": round(avg, 1) if avg is not None else 0.0,
        }

    def clear(self):
        self.conn.execute("DELETE FROM signals")
        self.conn.commit()

    def close(self):
        self.conn.close()
