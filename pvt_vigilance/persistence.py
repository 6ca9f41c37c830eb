from __future__ import annotations

import json
import sqlite3
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path

from .config import PvtConfig
from .metrics import onset_offset_ms
from .results import PvtResult

SCHEMA_VERSION = 1


def open_db(path: Path) -> sqlite3.Connection:
    """Open (creating if needed) the results database and bring its schema up to date."""
    db_path = Path(path)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path)
    conn.execute("PRAGMA foreign_keys=ON;")
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    _migrate(conn)
    return conn


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def _migrate(conn: sqlite3.Connection) -> None:
    row = conn.execute("PRAGMA user_version;").fetchone()
    ver = int(row[0]) if row else 0
    if ver >= SCHEMA_VERSION:
        return

    with conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS session (
                id INTEGER PRIMARY KEY,
                created_at_utc TEXT NOT NULL
            );
            """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS attempt (
                id INTEGER PRIMARY KEY,
                session_id INTEGER NOT NULL REFERENCES session(id) ON DELETE CASCADE,
                app_version TEXT NOT NULL,
                rng_seed INTEGER,
                config_json TEXT NOT NULL,
                result_json TEXT NOT NULL,
                started_at_utc TEXT NOT NULL,
                completed_at_utc TEXT NOT NULL
            );
            """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS metric (
                attempt_id INTEGER NOT NULL REFERENCES attempt(id) ON DELETE CASCADE,
                key TEXT NOT NULL,
                value TEXT NOT NULL,
                PRIMARY KEY (attempt_id, key)
            );
            """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS pvt_trial (
                id INTEGER PRIMARY KEY,
                attempt_id INTEGER NOT NULL REFERENCES attempt(id) ON DELETE CASCADE,
                trial_number INTEGER NOT NULL,
                onset_offset_ms INTEGER NOT NULL,
                rt_ms INTEGER,
                is_false_start INTEGER NOT NULL,
                is_lapse INTEGER NOT NULL,
                is_miss INTEGER NOT NULL
            );
            """
        )
        conn.execute("CREATE INDEX IF NOT EXISTS idx_pvt_trial_attempt ON pvt_trial(attempt_id, trial_number);")
        conn.execute(f"PRAGMA user_version={SCHEMA_VERSION};")


def record_pvt_attempt(
    *,
    db_path: Path,
    result: PvtResult,
    config: PvtConfig,
    app_version: str,
    seed: int | None = None,
) -> int:
    """
    Store one completed session:
      session -> attempt (config + full result JSON) -> metric + pvt_trial
    """
    conn = open_db(db_path)
    try:
        return _insert_attempt(conn=conn, result=result, config=config, app_version=app_version, seed=seed)
    finally:
        conn.close()


def load_pvt_result(*, db_path: Path, attempt_id: int) -> PvtResult | None:
    conn = open_db(db_path)
    try:
        row = conn.execute("SELECT result_json FROM attempt WHERE id = ?", (int(attempt_id),)).fetchone()
    finally:
        conn.close()
    if row is None:
        return None
    return PvtResult.from_json(str(row[0]))


def _insert_attempt(
    *,
    conn: sqlite3.Connection,
    result: PvtResult,
    config: PvtConfig,
    app_version: str,
    seed: int | None,
) -> int:
    now = _utc_now_iso()
    config_json = json.dumps({k: (v.value if hasattr(v, "value") else v) for k, v in asdict(config).items()})

    with conn:
        cur = conn.execute("INSERT INTO session(created_at_utc) VALUES (?)", (now,))
        session_id = int(cur.lastrowid)

        cur = conn.execute(
            """
            INSERT INTO attempt(
                session_id, app_version, rng_seed, config_json, result_json,
                started_at_utc, completed_at_utc
            )
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                session_id,
                app_version,
                None if seed is None else int(seed),
                config_json,
                result.to_json(),
                result.session_start.isoformat(),
                result.session_end.isoformat(),
            ),
        )
        attempt_id = int(cur.lastrowid)

        fastest = "" if result.fastest_reaction_time is None else str(result.fastest_reaction_time)
        slowest = "" if result.slowest_reaction_time is None else str(result.slowest_reaction_time)
        metrics = {
            "total_trials": str(result.total_trials),
            "valid_trials": str(result.valid_trials),
            "false_starts": str(result.false_starts),
            "lapses": str(result.lapses),
            "misses": str(result.misses),
            "mean_rt_ms": f"{result.mean_reaction_time:.3f}",
            "median_rt_ms": f"{result.median_reaction_time:.3f}",
            "sd_rt_ms": f"{result.standard_deviation:.3f}",
            "fastest_rt_ms": fastest,
            "slowest_rt_ms": slowest,
            "lapse_pct": f"{result.lapse_percentage:.6f}",
            "reciprocal_mean_rt": f"{result.reciprocal_mean_rt:.6f}",
        }
        for k, v in metrics.items():
            conn.execute("INSERT INTO metric(attempt_id, key, value) VALUES (?, ?, ?)", (attempt_id, k, v))

        for t in result.trials:
            conn.execute(
                """
                INSERT INTO pvt_trial(
                    attempt_id, trial_number, onset_offset_ms, rt_ms,
                    is_false_start, is_lapse, is_miss
                )
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    attempt_id,
                    int(t.trial_number),
                    onset_offset_ms(t, result.session_start),
                    t.reaction_time_ms,
                    1 if t.is_false_start else 0,
                    1 if t.is_lapse else 0,
                    1 if t.is_miss else 0,
                ),
            )

    return attempt_id
