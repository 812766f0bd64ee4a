"""
NutriPilot — Progress & User Database.

The memory of the bot: contributions, streak state, settled days and user
profiles persist in SQLite across restarts. Each user owns exactly one
streak_states row; it is created lazily and never deleted.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import date, datetime, timedelta
from pathlib import Path

from src.data.history import summarize_success_hours
from src.data.models import (
    ContributionEvent,
    DailyStatus,
    StreakCarry,
    StreakState,
    User,
)

logger = logging.getLogger(__name__)

HISTORY_DAYS = 28


def _to_date(value: str | None) -> date | None:
    return date.fromisoformat(value) if value else None


def _from_date(value: date | None) -> str | None:
    return value.isoformat() if value is not None else None


def _carry_to_json(carry: StreakCarry | None) -> str | None:
    if carry is None:
        return None
    return json.dumps({
        "streak": carry.streak,
        "best_streak": carry.best_streak,
        "last_success_date": _from_date(carry.last_success_date),
        "days_with_goal": carry.days_with_goal,
    })


def _carry_from_json(raw: str | None) -> StreakCarry | None:
    if not raw:
        return None
    data = json.loads(raw)
    return StreakCarry(
        streak=data["streak"],
        best_streak=data["best_streak"],
        last_success_date=_to_date(data["last_success_date"]),
        days_with_goal=data["days_with_goal"],
    )


class ProgressDB:
    """SQLite-backed storage for contributions, streak state and daily totals."""

    def __init__(self, db_path: str | None = None) -> None:
        if db_path is None:
            from src.config import settings
            db_path = settings.DATABASE_PATH

        self._db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        """Create the progress tables if they don't exist."""
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS contributions (
                    id        INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id   INTEGER NOT NULL,
                    day       TEXT    NOT NULL,
                    logged_at TEXT    NOT NULL,
                    amount    REAL    NOT NULL,
                    source    TEXT    NOT NULL DEFAULT ''
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_contributions_user_day "
                "ON contributions (user_id, day)"
            )
            conn.execute("""
                CREATE TABLE IF NOT EXISTS streak_states (
                    user_id               INTEGER PRIMARY KEY,
                    current_streak        INTEGER NOT NULL DEFAULT 0,
                    best_streak           INTEGER NOT NULL DEFAULT 0,
                    total_days_with_goal  INTEGER NOT NULL DEFAULT 0,
                    last_evaluated_date   TEXT,
                    last_success_date     TEXT,
                    carry_json            TEXT,
                    awarded_badges_json   TEXT NOT NULL DEFAULT '[]',
                    has_had_first_entry   INTEGER NOT NULL DEFAULT 0,
                    achievement_date      TEXT,
                    achievement_keys_json TEXT NOT NULL DEFAULT '[]'
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS daily_status (
                    user_id          INTEGER NOT NULL,
                    day              TEXT    NOT NULL,
                    target           REAL    NOT NULL,
                    consumed         REAL    NOT NULL,
                    settled          INTEGER NOT NULL DEFAULT 0,
                    rollover_balance REAL    NOT NULL DEFAULT 0,
                    PRIMARY KEY (user_id, day)
                )
            """)
        logger.debug("Progress tables initialized at %s", self._db_path)

    # ------------------------------------------------------------------
    # Contributions
    # ------------------------------------------------------------------

    @staticmethod
    def _row_to_event(row: sqlite3.Row) -> ContributionEvent:
        return ContributionEvent(
            logged_at=datetime.fromisoformat(row["logged_at"]),
            amount=row["amount"],
            source=row["source"],
        )

    def add_contribution(self, user_id: int, event: ContributionEvent) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO contributions (user_id, day, logged_at, amount, source)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    user_id,
                    event.logged_at.date().isoformat(),
                    event.logged_at.isoformat(),
                    event.amount,
                    event.source,
                ),
            )
        logger.info("Contribution logged for user %d: %.1f (%s)", user_id, event.amount, event.source)

    def contributions_for_day(self, user_id: int, day: date) -> list[ContributionEvent]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM contributions WHERE user_id = ? AND day = ? ORDER BY logged_at",
                (user_id, day.isoformat()),
            ).fetchall()
        return [self._row_to_event(r) for r in rows]

    def contributions_since(self, user_id: int, since: date) -> list[ContributionEvent]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM contributions WHERE user_id = ? AND day >= ? ORDER BY logged_at",
                (user_id, since.isoformat()),
            ).fetchall()
        return [self._row_to_event(r) for r in rows]

    # ------------------------------------------------------------------
    # Streak state
    # ------------------------------------------------------------------

    @staticmethod
    def _row_to_state(row: sqlite3.Row) -> StreakState:
        return StreakState(
            current_streak=row["current_streak"],
            best_streak=row["best_streak"],
            total_days_with_goal=row["total_days_with_goal"],
            last_evaluated_date=_to_date(row["last_evaluated_date"]),
            last_success_date=_to_date(row["last_success_date"]),
            carry=_carry_from_json(row["carry_json"]),
            awarded_badges=set(json.loads(row["awarded_badges_json"])),
            has_had_first_entry=bool(row["has_had_first_entry"]),
            achievement_date=_to_date(row["achievement_date"]),
            todays_achievement_keys=set(json.loads(row["achievement_keys_json"])),
        )

    def get_streak_state(self, user_id: int) -> StreakState:
        """Return the user's streak state, or a fresh one if none is stored."""
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM streak_states WHERE user_id = ?", (user_id,)
            ).fetchone()
        if row is None:
            return StreakState()
        return self._row_to_state(row)

    def save_streak_state(self, user_id: int, state: StreakState) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO streak_states
                    (user_id, current_streak, best_streak, total_days_with_goal,
                     last_evaluated_date, last_success_date, carry_json,
                     awarded_badges_json, has_had_first_entry,
                     achievement_date, achievement_keys_json)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(user_id) DO UPDATE SET
                    current_streak = excluded.current_streak,
                    best_streak = excluded.best_streak,
                    total_days_with_goal = excluded.total_days_with_goal,
                    last_evaluated_date = excluded.last_evaluated_date,
                    last_success_date = excluded.last_success_date,
                    carry_json = excluded.carry_json,
                    awarded_badges_json = excluded.awarded_badges_json,
                    has_had_first_entry = excluded.has_had_first_entry,
                    achievement_date = excluded.achievement_date,
                    achievement_keys_json = excluded.achievement_keys_json
                """,
                (
                    user_id,
                    state.current_streak,
                    state.best_streak,
                    state.total_days_with_goal,
                    _from_date(state.last_evaluated_date),
                    _from_date(state.last_success_date),
                    _carry_to_json(state.carry),
                    json.dumps(sorted(state.awarded_badges)),
                    int(state.has_had_first_entry),
                    _from_date(state.achievement_date),
                    json.dumps(sorted(state.todays_achievement_keys)),
                ),
            )
        logger.debug("Streak state saved for user %d (streak %d)", user_id, state.current_streak)

    # ------------------------------------------------------------------
    # Daily status & rollover
    # ------------------------------------------------------------------

    @staticmethod
    def _row_to_status(row: sqlite3.Row) -> DailyStatus:
        return DailyStatus(
            day=date.fromisoformat(row["day"]),
            target=row["target"],
            consumed=row["consumed"],
        )

    def save_daily_status(self, user_id: int, status: DailyStatus) -> None:
        """Upsert the day's running total. Settlement data is left alone."""
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO daily_status (user_id, day, target, consumed)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(user_id, day) DO UPDATE SET
                    target = excluded.target,
                    consumed = excluded.consumed
                """,
                (user_id, status.day.isoformat(), status.target, status.consumed),
            )

    def mark_settled(self, user_id: int, day: date, rollover_balance: float) -> None:
        with self._connect() as conn:
            conn.execute(
                "UPDATE daily_status SET settled = 1, rollover_balance = ? "
                "WHERE user_id = ? AND day = ?",
                (rollover_balance, user_id, day.isoformat()),
            )
        logger.info(
            "Day %s settled for user %d (rollover balance %.1f)",
            day.isoformat(), user_id, rollover_balance,
        )

    def get_daily_status(self, user_id: int, day: date) -> DailyStatus | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM daily_status WHERE user_id = ? AND day = ?",
                (user_id, day.isoformat()),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_status(row)

    def daily_statuses(self, user_id: int, since: date) -> list[DailyStatus]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM daily_status WHERE user_id = ? AND day >= ? ORDER BY day",
                (user_id, since.isoformat()),
            ).fetchall()
        return [self._row_to_status(r) for r in rows]

    def rollover_balance_before(self, user_id: int, day: date) -> float:
        """Balance left by the latest settled day strictly before `day`."""
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT rollover_balance FROM daily_status
                WHERE user_id = ? AND day < ? AND settled = 1
                ORDER BY day DESC LIMIT 1
                """,
                (user_id, day.isoformat()),
            ).fetchone()
        return row["rollover_balance"] if row is not None else 0.0

    def top_success_hours(
        self, user_id: int, before: date, days: int = HISTORY_DAYS,
    ) -> list[int]:
        """Usual success hours over the `days` preceding `before`."""
        since = before - timedelta(days=days)
        statuses = [s for s in self.daily_statuses(user_id, since) if s.day < before]
        targets = {s.day: s.target for s in statuses}
        events = [
            ev for ev in self.contributions_since(user_id, since)
            if ev.logged_at.date() < before
        ]
        return summarize_success_hours(events, targets)


class UserDB:
    """SQLite-backed storage for registered bot users."""

    def __init__(self, db_path: str | None = None) -> None:
        if db_path is None:
            from src.config import settings
            db_path = settings.DATABASE_PATH

        self._db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS users (
                    telegram_user_id    INTEGER PRIMARY KEY,
                    display_name        TEXT NOT NULL,
                    daily_target        REAL NOT NULL,
                    eating_window_start TEXT NOT NULL,
                    eating_window_end   TEXT NOT NULL,
                    cooking_skill       TEXT NOT NULL DEFAULT 'basic',
                    no_gos_json         TEXT NOT NULL DEFAULT '[]',
                    onboarded           INTEGER NOT NULL DEFAULT 0,
                    created_at          TEXT NOT NULL
                )
            """)
        logger.debug("Users table initialized at %s", self._db_path)

    @staticmethod
    def _row_to_user(row: sqlite3.Row) -> User:
        return User(
            telegram_user_id=row["telegram_user_id"],
            display_name=row["display_name"],
            daily_target=row["daily_target"],
            eating_window_start=row["eating_window_start"],
            eating_window_end=row["eating_window_end"],
            cooking_skill=row["cooking_skill"],
            no_gos=json.loads(row["no_gos_json"]),
            onboarded=bool(row["onboarded"]),
            created_at=row["created_at"],
        )

    def add_user(
        self,
        telegram_user_id: int,
        display_name: str,
        daily_target: float = 120.0,
        eating_window_start: str = "08:00",
        eating_window_end: str = "20:00",
    ) -> User:
        """Register a new user with their starting target and eating window."""
        now = datetime.now().isoformat()
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO users
                    (telegram_user_id, display_name, daily_target,
                     eating_window_start, eating_window_end, onboarded, created_at)
                VALUES (?, ?, ?, ?, ?, 1, ?)
                """,
                (
                    telegram_user_id, display_name, daily_target,
                    eating_window_start, eating_window_end, now,
                ),
            )
        user = User(
            telegram_user_id=telegram_user_id,
            display_name=display_name,
            daily_target=daily_target,
            eating_window_start=eating_window_start,
            eating_window_end=eating_window_end,
            onboarded=True,
            created_at=now,
        )
        logger.info("User registered: %d '%s'", telegram_user_id, display_name)
        return user

    def get_user(self, telegram_user_id: int) -> User | None:
        """Fetch a user by Telegram user ID."""
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM users WHERE telegram_user_id = ?",
                (telegram_user_id,),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    def set_daily_target(self, telegram_user_id: int, target: float) -> None:
        with self._connect() as conn:
            conn.execute(
                "UPDATE users SET daily_target = ? WHERE telegram_user_id = ?",
                (target, telegram_user_id),
            )
        logger.info("Daily target for user %d set to %.1f", telegram_user_id, target)

    def set_eating_window(self, telegram_user_id: int, start: str, end: str) -> None:
        with self._connect() as conn:
            conn.execute(
                "UPDATE users SET eating_window_start = ?, eating_window_end = ? "
                "WHERE telegram_user_id = ?",
                (start, end, telegram_user_id),
            )
        logger.info("Eating window for user %d set to %s-%s", telegram_user_id, start, end)

    def set_preferences(
        self, telegram_user_id: int, cooking_skill: str, no_gos: list[str],
    ) -> None:
        """Store cooking skill and the words meal ideas must avoid."""
        with self._connect() as conn:
            conn.execute(
                "UPDATE users SET cooking_skill = ?, no_gos_json = ? WHERE telegram_user_id = ?",
                (cooking_skill, json.dumps(no_gos), telegram_user_id),
            )
        logger.info("Preferences for user %d: %s, no-gos %s", telegram_user_id, cooking_skill, no_gos)

    def set_onboarded(self, telegram_user_id: int, onboarded: bool) -> None:
        """Enable or pause planning and settlement for a user."""
        with self._connect() as conn:
            conn.execute(
                "UPDATE users SET onboarded = ? WHERE telegram_user_id = ?",
                (int(onboarded), telegram_user_id),
            )
        logger.info("User %d onboarded=%s", telegram_user_id, onboarded)

    def list_users(self, onboarded_only: bool = False) -> list[User]:
        """Return registered users, oldest first."""
        query = "SELECT * FROM users"
        if onboarded_only:
            query += " WHERE onboarded = 1"
        query += " ORDER BY created_at"
        with self._connect() as conn:
            rows = conn.execute(query).fetchall()
        return [self._row_to_user(r) for r in rows]

    def is_registered(self, telegram_user_id: int) -> bool:
        """Check if a user is registered."""
        with self._connect() as conn:
            row = conn.execute(
                "SELECT 1 FROM users WHERE telegram_user_id = ?",
                (telegram_user_id,),
            ).fetchone()
        return row is not None
