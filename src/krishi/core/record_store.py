"""SQLite-backed records of users, loan applications and conversation logs."""

from __future__ import annotations

import json
import sqlite3
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from .agent_types import ConversationLogEntry, KycStatus, LoanApplication, Speaker, User
from .config_loader import get_storage_config
from .errors import UniquenessViolation


def _repo_root() -> Path:
    return Path(__file__).resolve().parents[3]


def _utc_now_iso() -> str:
    return datetime.now(tz=UTC).isoformat()


def resolve_db_path(path: str | Path | None = None) -> Path:
    raw = path or get_storage_config().get("db_path")
    candidate = Path(str(raw))
    if not candidate.is_absolute():
        candidate = _repo_root() / candidate
    return candidate.resolve()


def _row_to_user(row: sqlite3.Row) -> User:
    return User(
        user_id=int(row["id"]),
        phone_number=row["phone_number"],
        name=row["name"],
        kyc_status=row["kyc_status"],
        created_at=row["created_at"],
    )


def _row_to_application(row: sqlite3.Row) -> LoanApplication:
    raw_data = row["agri_stack_data"]
    try:
        agri_data = json.loads(raw_data) if raw_data else {}
    except json.JSONDecodeError:
        agri_data = {"raw": raw_data}
    return LoanApplication(
        application_id=int(row["id"]),
        user_id=row["user_id"],
        status=row["status"],
        amount_requested=row["amount_requested"],
        risk_score=row["risk_score"],
        interest_rate=row["interest_rate"],
        agri_stack_data=agri_data if isinstance(agri_data, dict) else {"value": agri_data},
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_log_entry(row: sqlite3.Row) -> ConversationLogEntry:
    return ConversationLogEntry(
        entry_id=int(row["id"]),
        user_id=row["user_id"],
        message_content=row["message_content"],
        speaker=row["speaker"],
        timestamp=row["timestamp"],
    )


class RecordStore:
    """Persist users, underwriting decisions and the append-only conversation log."""

    def __init__(self, db_path: str | Path | None = None) -> None:
        self._db_path = resolve_db_path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self.ensure_schema()

    @property
    def db_path(self) -> Path:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def ensure_schema(self) -> None:
        with self._connect() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    phone_number TEXT NOT NULL UNIQUE,
                    name TEXT,
                    kyc_status TEXT NOT NULL DEFAULT 'PENDING'
                        CHECK (kyc_status IN ('PENDING', 'VERIFIED', 'FAILED')),
                    created_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS loan_applications (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL,
                    status TEXT NOT NULL DEFAULT 'DRAFT'
                        CHECK (status IN ('DRAFT', 'SUBMITTED', 'APPROVED', 'REJECTED')),
                    amount_requested REAL,
                    risk_score REAL CHECK (risk_score IS NULL OR (risk_score >= 0 AND risk_score <= 100)),
                    interest_rate REAL CHECK (interest_rate IS NULL OR status = 'APPROVED'),
                    agri_stack_data TEXT NOT NULL DEFAULT '{}',
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS conversation_logs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL,
                    message_content TEXT NOT NULL,
                    speaker TEXT NOT NULL CHECK (speaker IN ('USER', 'BOT')),
                    timestamp TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_conversation_logs_user_ts
                    ON conversation_logs(user_id, timestamp, id);
                CREATE INDEX IF NOT EXISTS idx_loan_applications_user
                    ON loan_applications(user_id, created_at);

                CREATE TRIGGER IF NOT EXISTS conversation_logs_no_update
                    BEFORE UPDATE ON conversation_logs
                    BEGIN SELECT RAISE(ABORT, 'conversation_logs is append-only'); END;
                CREATE TRIGGER IF NOT EXISTS conversation_logs_no_delete
                    BEFORE DELETE ON conversation_logs
                    BEGIN SELECT RAISE(ABORT, 'conversation_logs is append-only'); END;
                CREATE TRIGGER IF NOT EXISTS loan_applications_no_update
                    BEFORE UPDATE ON loan_applications
                    BEGIN SELECT RAISE(ABORT, 'loan_applications are immutable'); END;
                """
            )

    # Users

    def create_user(self, user: User) -> User:
        try:
            with self._connect() as conn:
                cur = conn.execute(
                    "INSERT INTO users(phone_number, name, kyc_status, created_at) VALUES(?, ?, ?, ?);",
                    (user.phone_number, user.name, user.kyc_status, user.created_at),
                )
                user_id = int(cur.lastrowid)
        except sqlite3.IntegrityError as exc:
            if "UNIQUE" in str(exc).upper():
                raise UniquenessViolation(
                    f"User with phoneNumber `{user.phone_number}` already exists.",
                    field="phoneNumber",
                ) from exc
            raise
        return User(
            user_id=user_id,
            phone_number=user.phone_number,
            name=user.name,
            kyc_status=user.kyc_status,
            created_at=user.created_at,
        )

    def upsert_user_kyc(self, *, phone_number: str, name: str | None, kyc_status: KycStatus) -> User:
        """Create the user on first KYC attempt, otherwise update name and status."""
        probe = User(phone_number=phone_number, name=name, kyc_status=kyc_status)
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO users(phone_number, name, kyc_status, created_at)
                VALUES(?, ?, ?, ?)
                ON CONFLICT(phone_number) DO UPDATE SET
                    name = excluded.name,
                    kyc_status = excluded.kyc_status;
                """,
                (probe.phone_number, probe.name, probe.kyc_status, probe.created_at),
            )
            row = conn.execute("SELECT * FROM users WHERE phone_number = ?;", (probe.phone_number,)).fetchone()
        return _row_to_user(row)

    def get_user_by_phone(self, phone_number: str) -> User | None:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM users WHERE phone_number = ?;", (phone_number.strip(),)).fetchone()
        return _row_to_user(row) if row is not None else None

    # Loan applications

    def create_loan_application(self, application: LoanApplication) -> LoanApplication:
        with self._connect() as conn:
            cur = conn.execute(
                """
                INSERT INTO loan_applications(
                    user_id, status, amount_requested, risk_score, interest_rate,
                    agri_stack_data, created_at, updated_at
                )
                VALUES(?, ?, ?, ?, ?, ?, ?, ?);
                """,
                (
                    str(application.user_id),
                    application.status,
                    application.amount_requested,
                    application.risk_score,
                    application.interest_rate,
                    json.dumps(application.agri_stack_data, ensure_ascii=False, default=str),
                    application.created_at,
                    application.updated_at,
                ),
            )
            row = conn.execute("SELECT * FROM loan_applications WHERE id = ?;", (int(cur.lastrowid),)).fetchone()
        return _row_to_application(row)

    def list_loan_applications(self, user_id: str | None = None) -> list[LoanApplication]:
        with self._connect() as conn:
            if user_id is None:
                rows = conn.execute("SELECT * FROM loan_applications ORDER BY created_at ASC, id ASC;").fetchall()
            else:
                rows = conn.execute(
                    "SELECT * FROM loan_applications WHERE user_id = ? ORDER BY created_at ASC, id ASC;",
                    (str(user_id),),
                ).fetchall()
        return [_row_to_application(row) for row in rows]

    # Conversation log

    def append_conversation_log(self, *, user_id: str, message_content: str, speaker: Speaker) -> ConversationLogEntry:
        entry = ConversationLogEntry(user_id=str(user_id), message_content=message_content, speaker=speaker)
        with self._connect() as conn:
            cur = conn.execute(
                "INSERT INTO conversation_logs(user_id, message_content, speaker, timestamp) VALUES(?, ?, ?, ?);",
                (entry.user_id, entry.message_content, entry.speaker, entry.timestamp),
            )
            entry_id = int(cur.lastrowid)
        return ConversationLogEntry(
            entry_id=entry_id,
            user_id=entry.user_id,
            message_content=entry.message_content,
            speaker=entry.speaker,
            timestamp=entry.timestamp,
        )

    def list_conversation_logs(self, user_id: str, *, limit: int | None = None) -> list[ConversationLogEntry]:
        """Entries for one user in (timestamp, insertion) order; `limit` keeps the most recent."""
        with self._connect() as conn:
            if limit is None:
                rows = conn.execute(
                    "SELECT * FROM conversation_logs WHERE user_id = ? ORDER BY timestamp ASC, id ASC;",
                    (str(user_id),),
                ).fetchall()
            else:
                safe_limit = max(1, int(limit))
                rows = conn.execute(
                    """
                    SELECT * FROM (
                        SELECT * FROM conversation_logs WHERE user_id = ?
                        ORDER BY timestamp DESC, id DESC LIMIT ?
                    ) ORDER BY timestamp ASC, id ASC;
                    """,
                    (str(user_id), safe_limit),
                ).fetchall()
        return [_row_to_log_entry(row) for row in rows]

    def health(self) -> dict[str, Any]:
        with self._connect() as conn:
            counts = {
                table: int(conn.execute(f"SELECT COUNT(*) FROM {table};").fetchone()[0])
                for table in ("users", "loan_applications", "conversation_logs")
            }
        return {"ok": True, "db_path": str(self._db_path), "counts": counts, "checked_at": _utc_now_iso()}
