# src/synapse_ops/ledger/quota.py
from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from decimal import ROUND_FLOOR, Decimal
from typing import Any, Dict, List, Optional

from synapse_ops.ledger.sqlite_db import SqliteDB
from synapse_ops.structured_logging import log_event

Json = Dict[str, Any]

# $1 buys 100 MiB of quota.
BYTES_PER_USD = 100 * 1024 * 1024

log = logging.getLogger("synapse_ops.ledger")


def quota_bytes_for_usd(amount_usd: float) -> int:
    d = Decimal(str(amount_usd))
    if d < 0:
        raise ValueError(f"payment amount must be non-negative: {amount_usd!r}")
    return int((d * BYTES_PER_USD).to_integral_value(rounding=ROUND_FLOOR))


@dataclass(frozen=True)
class User:
    id: int
    address: str
    chain: str
    email: Optional[str]
    quota_bytes: int
    used_bytes: int
    created_at: str

    @staticmethod
    def from_row(row: sqlite3.Row) -> "User":
        return User(
            id=int(row["id"]),
            address=str(row["address"]),
            chain=str(row["chain"]),
            email=row["email"],
            quota_bytes=int(row["quota_bytes"]),
            used_bytes=int(row["used_bytes"]),
            created_at=str(row["created_at"]),
        )


@dataclass(frozen=True)
class QuotaStatus:
    quota_bytes: int
    used_bytes: int

    @property
    def remaining_bytes(self) -> int:
        return self.quota_bytes - self.used_bytes

    def to_json(self) -> Json:
        return {
            "quota_bytes": self.quota_bytes,
            "used_bytes": self.used_bytes,
            "remaining_bytes": self.remaining_bytes,
        }


class QuotaLedger:
    """Per-user storage quota bought with on-chain payments.

    Tables: users, payments (tx_hash UNIQUE), uploads.

    Guarantees:
      - a tx_hash credits quota at most once (insert + credit share one write tx)
      - record_upload() is unconditional; callers check can_upload() first
      - reserve_upload() is the atomic alternative: the quota check and the
        usage increment are a single conditional UPDATE
    """

    def __init__(self, db: SqliteDB) -> None:
        self.db = db
        self.db.init_schema()

    @classmethod
    def open(cls, path: str) -> "QuotaLedger":
        return cls(SqliteDB(path=path))

    # ----------------------------
    # Users
    # ----------------------------

    def ensure_user(self, address: str, chain: str, email: Optional[str] = None) -> User:
        addr = str(address).strip()
        if not addr:
            raise ValueError("address is required")
        with self.db.write_tx() as con:
            con.execute(
                "INSERT OR IGNORE INTO users(address, chain, email) VALUES(?, ?, ?);",
                (addr, str(chain), email),
            )
            row = con.execute("SELECT * FROM users WHERE address=? LIMIT 1;", (addr,)).fetchone()
        return User.from_row(row)

    def get_user(self, address: str) -> Optional[User]:
        with self.db.connection() as con:
            row = con.execute("SELECT * FROM users WHERE address=? LIMIT 1;", (str(address).strip(),)).fetchone()
        return User.from_row(row) if row is not None else None

    # ----------------------------
    # Payments
    # ----------------------------

    def grant_quota(self, user_id: int, amount_usd: float, tx_hash: str, chain: str) -> bool:
        """Record a payment and credit its quota. False when tx_hash was already recorded."""
        granted = quota_bytes_for_usd(amount_usd)
        with self.db.write_tx() as con:
            cur = con.execute(
                """
                INSERT OR IGNORE INTO payments(user_id, chain, tx_hash, amount_usd, quota_bytes_granted)
                VALUES(?, ?, ?, ?, ?);
                """,
                (int(user_id), str(chain), str(tx_hash), float(amount_usd), granted),
            )
            if cur.rowcount == 0:
                log_event(log, "payment_duplicate", level=logging.WARNING, user_id=int(user_id), tx_hash=str(tx_hash))
                return False
            con.execute("UPDATE users SET quota_bytes = quota_bytes + ? WHERE id=?;", (granted, int(user_id)))

        log_event(log, "payment_recorded", user_id=int(user_id), tx_hash=str(tx_hash), quota_bytes_granted=granted)
        return True

    def user_payments(self, user_id: int) -> List[Json]:
        with self.db.connection() as con:
            rows = con.execute(
                "SELECT * FROM payments WHERE user_id=? ORDER BY created_at DESC, id DESC;",
                (int(user_id),),
            ).fetchall()
        return [dict(r) for r in rows]

    # ----------------------------
    # Uploads
    # ----------------------------

    def record_upload(self, user_id: int, piece_cid: str, size_bytes: int) -> None:
        with self.db.write_tx() as con:
            con.execute(
                "INSERT INTO uploads(user_id, piece_cid, size_bytes) VALUES(?, ?, ?);",
                (int(user_id), str(piece_cid), int(size_bytes)),
            )
            con.execute("UPDATE users SET used_bytes = used_bytes + ? WHERE id=?;", (int(size_bytes), int(user_id)))
        log_event(log, "upload_recorded", user_id=int(user_id), piece_cid=str(piece_cid), size_bytes=int(size_bytes))

    def user_uploads(self, user_id: int) -> List[Json]:
        with self.db.connection() as con:
            rows = con.execute(
                "SELECT * FROM uploads WHERE user_id=? ORDER BY created_at DESC, id DESC;",
                (int(user_id),),
            ).fetchall()
        return [dict(r) for r in rows]

    def uploads_per_day(self, since: str) -> Dict[str, int]:
        """Upload rows per UTC day (YYYY-MM-DD) on or after `since`."""
        with self.db.connection() as con:
            rows = con.execute(
                """
                SELECT date(created_at) AS day, COUNT(*) AS n FROM uploads
                WHERE date(created_at) >= ? GROUP BY day ORDER BY day;
                """,
                (str(since),),
            ).fetchall()
        return {str(r["day"]): int(r["n"]) for r in rows}

    # ----------------------------
    # Quota checks
    # ----------------------------

    def get_quota(self, user_id: int) -> Optional[QuotaStatus]:
        with self.db.connection() as con:
            row = con.execute("SELECT quota_bytes, used_bytes FROM users WHERE id=? LIMIT 1;", (int(user_id),)).fetchone()
        if row is None:
            return None
        return QuotaStatus(quota_bytes=int(row["quota_bytes"]), used_bytes=int(row["used_bytes"]))

    def can_upload(self, user_id: int, size_bytes: int) -> bool:
        q = self.get_quota(user_id)
        if q is None:
            return False
        return q.remaining_bytes >= int(size_bytes)

    def reserve_upload(self, user_id: int, size_bytes: int) -> bool:
        """Atomically claim size_bytes of quota. False (and no change) when it does not fit."""
        n = int(size_bytes)
        if n < 0:
            raise ValueError("size_bytes must be non-negative")
        with self.db.write_tx() as con:
            cur = con.execute(
                """
                UPDATE users SET used_bytes = used_bytes + ?
                WHERE id=? AND quota_bytes - used_bytes >= ?;
                """,
                (n, int(user_id), n),
            )
            ok = cur.rowcount == 1
        log_event(log, "quota_reserve", user_id=int(user_id), size_bytes=n, ok=ok)
        return ok

    def release_reservation(self, user_id: int, size_bytes: int) -> None:
        with self.db.write_tx() as con:
            con.execute(
                "UPDATE users SET used_bytes = MAX(0, used_bytes - ?) WHERE id=?;",
                (int(size_bytes), int(user_id)),
            )
        log_event(log, "quota_release", user_id=int(user_id), size_bytes=int(size_bytes))

    def commit_upload(self, user_id: int, piece_cid: str, reserved_bytes: int, size_bytes: int) -> None:
        """Turn a reservation into an upload row, settling any size difference."""
        delta = int(size_bytes) - int(reserved_bytes)
        with self.db.write_tx() as con:
            con.execute(
                "INSERT INTO uploads(user_id, piece_cid, size_bytes) VALUES(?, ?, ?);",
                (int(user_id), str(piece_cid), int(size_bytes)),
            )
            if delta:
                con.execute(
                    "UPDATE users SET used_bytes = MAX(0, used_bytes + ?) WHERE id=?;",
                    (delta, int(user_id)),
                )
        log_event(log, "upload_committed", user_id=int(user_id), piece_cid=str(piece_cid), size_bytes=int(size_bytes))
