import os
import uuid
from typing import Any, Callable, Dict, List, Optional, Tuple

import psycopg2
from psycopg2 import pool as pg_pool
from psycopg2.extras import RealDictCursor, execute_values
from psycopg2 import errors as pg_errors
from contextlib import contextmanager

from .errors import ConflictError, NotFoundError, TransientStoreError, ValidationError


_POOL: Optional[pg_pool.AbstractConnectionPool] = None

ACCESS_CODE_LENGTH = 6
ACCESS_CODE_ATTEMPTS = 3
ACCESS_CODE_CONSTRAINT = "play_groups_access_code_key"


def _generate_access_code(existing_codes: set[str]) -> str:
    """Return a short upper-case code not present in ``existing_codes``."""
    while True:
        candidate = uuid.uuid4().hex.upper()[:ACCESS_CODE_LENGTH]
        if candidate not in existing_codes:
            existing_codes.add(candidate)
            return candidate


def _is_access_code_clash(err: Exception) -> bool:
    diag = getattr(err, "diag", None)
    return getattr(diag, "constraint_name", None) == ACCESS_CODE_CONSTRAINT


def _env_int(name: str, default: Optional[int] = None) -> Optional[int]:
    val = os.environ.get(name)
    if val is None:
        return default
    try:
        return int(val)
    except Exception:
        return default


def _connect_kwargs() -> Dict[str, Any]:
    """Common connection kwargs: connect_timeout + TCP keepalives.

    Defaults:
      - connect_timeout: 10 seconds (overridable via DB_CONNECT_TIMEOUT)
      - keepalives: enabled by default; can be disabled by DB_KEEPALIVES=0
      - keepalive tunables applied if provided (IDLE/INTERVAL/COUNT)
    """
    kwargs: Dict[str, Any] = {}
    ct_env = _env_int("DB_CONNECT_TIMEOUT")
    kwargs["connect_timeout"] = ct_env if ct_env is not None else 10

    ka_env = os.environ.get("DB_KEEPALIVES")
    if ka_env is None:
        kwargs["keepalives"] = 1
    else:
        kwargs["keepalives"] = 0 if str(ka_env).lower() in ("0", "false") else 1

    idle = _env_int("DB_KEEPALIVES_IDLE")
    if idle is not None:
        kwargs["keepalives_idle"] = idle
    interval = _env_int("DB_KEEPALIVES_INTERVAL")
    if interval is not None:
        kwargs["keepalives_interval"] = interval
    count = _env_int("DB_KEEPALIVES_COUNT")
    if count is not None:
        kwargs["keepalives_count"] = count
    return kwargs


def init_pool(minconn: int = 1, maxconn: int = 10) -> None:
    """Initialize a global connection pool using DATABASE_URL.

    Safe to call multiple times; subsequent calls are ignored once a pool exists.
    """
    global _POOL
    if _POOL is not None:
        return
    url = os.environ.get("DATABASE_URL")
    if not url:
        return
    _POOL = pg_pool.ThreadedConnectionPool(minconn, maxconn, dsn=url, **_connect_kwargs())


@contextmanager
def _pooled_conn(url: str):
    """Check out a healthy pooled connection, or connect directly without a pool."""
    if _POOL is not None:
        retried = False
        while True:
            conn = _POOL.getconn()
            healthy = True
            try:
                with conn.cursor() as cur:
                    cur.execute("SELECT 1")
                # Clear implicit transaction started by SELECT when autocommit is off
                try:
                    if not getattr(conn, "autocommit", False):
                        conn.rollback()
                except Exception:
                    pass
            except (psycopg2.OperationalError, psycopg2.InterfaceError):
                healthy = False
            except Exception:
                healthy = False

            if not healthy:
                # Discard the broken connection and retry once
                try:
                    _POOL.putconn(conn, close=True)
                except Exception:
                    pass
                if retried:
                    raise psycopg2.OperationalError("Failed to acquire healthy DB connection after retry")
                retried = True
                continue

            try:
                try:
                    yield conn
                except Exception:
                    try:
                        conn.rollback()
                    except Exception:
                        pass
                    raise
            finally:
                # Ensure connection not left in a transaction
                try:
                    if getattr(conn, "closed", 0) == 0 and not getattr(conn, "autocommit", False):
                        # status 0 = idle, 1 = active, 2 = intrans, 3 = inerror
                        if getattr(conn, "status", 0) in (1, 2, 3):
                            try:
                                conn.rollback()
                            except Exception:
                                pass
                finally:
                    _POOL.putconn(conn)
            break
    else:
        conn = psycopg2.connect(url, **_connect_kwargs())
        try:
            try:
                yield conn
            except Exception:
                try:
                    conn.rollback()
                except Exception:
                    pass
                raise
        finally:
            try:
                conn.close()
            except Exception:
                pass


@contextmanager
def _get_conn():
    """Yield a database connection; lost connections surface as TransientStoreError.

    Any exception raised inside the block rolls the transaction back, so a
    failed hole write never leaves some players' strokes behind.
    """
    url = os.environ.get("DATABASE_URL")
    if not url:
        raise RuntimeError("DATABASE_URL not set; configure a PostgreSQL connection string")
    try:
        with _pooled_conn(url) as conn:
            yield conn
    except (psycopg2.OperationalError, psycopg2.InterfaceError) as e:
        raise TransientStoreError("The score database is unavailable; please retry") from e


def _date_to_str(val) -> Optional[str]:
    if val is None:
        return None
    try:
        return val.isoformat()
    except Exception:
        return str(val)


# -- players -----------------------------------------------------------------

def list_players() -> List[Dict[str, Any]]:
    with _get_conn() as conn, conn.cursor(cursor_factory=RealDictCursor) as cur:
        cur.execute(
            """
            SELECT id AS player_id, full_name, email, gender, handicap_index
            FROM players
            ORDER BY full_name, id
            """
        )
        return [dict(r) for r in cur.fetchall() or []]


def get_player(player_id: int) -> Optional[Dict[str, Any]]:
    with _get_conn() as conn, conn.cursor(cursor_factory=RealDictCursor) as cur:
        cur.execute(
            "SELECT id AS player_id, full_name, email, gender, handicap_index FROM players WHERE id = %s",
            (player_id,),
        )
        row = cur.fetchone()
        return dict(row) if row else None


def create_player(player: Dict[str, Any]) -> Dict[str, Any]:
    with _get_conn() as conn, conn.cursor(cursor_factory=RealDictCursor) as cur:
        try:
            cur.execute(
                """
                INSERT INTO players (full_name, email, gender, handicap_index)
                VALUES (%s, %s, %s, %s)
                RETURNING id
                """,
                (player.get("full_name"), player.get("email"), player.get("gender"), player.get("handicap_index")),
            )
        except pg_errors.UniqueViolation as e:
            raise ValidationError(f"A player with email {player.get('email')} already exists") from e
        row = cur.fetchone()
        conn.commit()
    return {**player, "player_id": row["id"]}


# -- courses -----------------------------------------------------------------

def _fetch_holes(cur, course_id: int) -> List[Dict[str, Any]]:
    cur.execute(
        """
        SELECT id, hole_number, par, stroke_index
        FROM holes
        WHERE course_id = %s
        ORDER BY hole_number
        """,
        (course_id,),
    )
    holes = [dict(r) for r in cur.fetchall() or []]
    if not holes:
        return []
    cur.execute(
        "SELECT hole_id, color, yardage FROM tees WHERE hole_id = ANY(%s) ORDER BY hole_id, color",
        ([h["id"] for h in holes],),
    )
    tees_by_hole: Dict[int, List[Dict[str, Any]]] = {}
    for tee in cur.fetchall() or []:
        tees_by_hole.setdefault(tee["hole_id"], []).append({"color": tee["color"], "yardage": tee["yardage"]})
    for hole in holes:
        hole["tees"] = tees_by_hole.get(hole.pop("id"), [])
    return holes


def list_courses() -> List[Dict[str, Any]]:
    with _get_conn() as conn, conn.cursor(cursor_factory=RealDictCursor) as cur:
        cur.execute("SELECT id AS course_id, name, location FROM courses ORDER BY name, id")
        return [dict(r) for r in cur.fetchall() or []]


def get_course(course_id: int) -> Optional[Dict[str, Any]]:
    with _get_conn() as conn, conn.cursor(cursor_factory=RealDictCursor) as cur:
        cur.execute("SELECT id AS course_id, name, location FROM courses WHERE id = %s", (course_id,))
        row = cur.fetchone()
        if not row:
            return None
        course = dict(row)
        course["holes"] = _fetch_holes(cur, course_id)
        return course


def create_course(course: Dict[str, Any]) -> Dict[str, Any]:
    """Insert a course with its holes and tees in one transaction.

    ``course["holes"]`` must already be normalized (see birdify.courses).
    """
    with _get_conn() as conn, conn.cursor(cursor_factory=RealDictCursor) as cur:
        cur.execute(
            "INSERT INTO courses (name, location) VALUES (%s, %s) RETURNING id",
            (course.get("name"), course.get("location")),
        )
        course_id = cur.fetchone()["id"]
        tee_rows: List[Tuple[int, str, int]] = []
        for hole in course.get("holes") or []:
            cur.execute(
                """
                INSERT INTO holes (course_id, hole_number, par, stroke_index)
                VALUES (%s, %s, %s, %s)
                RETURNING id
                """,
                (course_id, hole["hole_number"], hole["par"], hole.get("stroke_index")),
            )
            hole_id = cur.fetchone()["id"]
            for tee in hole.get("tees") or []:
                tee_rows.append((hole_id, tee["color"], tee["yardage"]))
        if tee_rows:
            execute_values(cur, "INSERT INTO tees (hole_id, color, yardage) VALUES %s", tee_rows)
        conn.commit()
    return {**course, "course_id": course_id}


def delete_course(course_id: int) -> bool:
    with _get_conn() as conn, conn.cursor() as cur:
        try:
            cur.execute("DELETE FROM courses WHERE id = %s", (course_id,))
        except pg_errors.ForeignKeyViolation as e:
            raise ValidationError("This course is used by one or more tournaments and cannot be deleted") from e
        deleted = (cur.rowcount or 0) > 0
        conn.commit()
    return deleted


# -- tournaments and trainings -----------------------------------------------

def _tournament_row(row: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(row)
    out["date"] = _date_to_str(out.get("date"))
    out["categories"] = list(out.get("categories") or [])
    return out


def list_tournaments(status: Optional[str] = None) -> List[Dict[str, Any]]:
    sql = """
        SELECT t.id AS tournament_id, t.name, t.date, t.status, t.course_id, t.categories,
               c.name AS course_name
        FROM tournaments t
        LEFT JOIN courses c ON t.course_id = c.id
    """
    params: List[Any] = []
    if status:
        sql += " WHERE t.status = %s"
        params.append(status)
    sql += " ORDER BY t.date DESC, t.id DESC"
    with _get_conn() as conn, conn.cursor(cursor_factory=RealDictCursor) as cur:
        cur.execute(sql, params)
        return [_tournament_row(r) for r in cur.fetchall() or []]


def get_tournament(tournament_id: int) -> Optional[Dict[str, Any]]:
    with _get_conn() as conn, conn.cursor(cursor_factory=RealDictCursor) as cur:
        cur.execute(
            """
            SELECT t.id AS tournament_id, t.name, t.date, t.status, t.course_id, t.categories,
                   c.name AS course_name
            FROM tournaments t
            LEFT JOIN courses c ON t.course_id = c.id
            WHERE t.id = %s
            """,
            (tournament_id,),
        )
        row = cur.fetchone()
        return _tournament_row(row) if row else None


def create_tournament(tournament: Dict[str, Any]) -> Dict[str, Any]:
    with _get_conn() as conn, conn.cursor(cursor_factory=RealDictCursor) as cur:
        cur.execute(
            """
            INSERT INTO tournaments (name, date, course_id, status, categories)
            VALUES (%s, %s, %s, 'scheduled', %s)
            RETURNING id
            """,
            (
                tournament.get("name"),
                tournament.get("date"),
                tournament.get("course_id"),
                list(tournament.get("categories") or []),
            ),
        )
        tournament_id = cur.fetchone()["id"]
        conn.commit()
    return {**tournament, "tournament_id": tournament_id, "status": "scheduled"}


def delete_tournament(tournament_id: int) -> bool:
    with _get_conn() as conn, conn.cursor() as cur:
        cur.execute("DELETE FROM tournaments WHERE id = %s", (tournament_id,))
        deleted = (cur.rowcount or 0) > 0
        conn.commit()
    return deleted


def set_tournament_status(tournament_id: int, status: str) -> bool:
    with _get_conn() as conn, conn.cursor() as cur:
        cur.execute("UPDATE tournaments SET status = %s WHERE id = %s", (status, tournament_id))
        updated = (cur.rowcount or 0) > 0
        conn.commit()
    return updated


def _insert_group(cur, group: Dict[str, Any]) -> Dict[str, Any]:
    cur.execute("SELECT access_code FROM play_groups")
    existing = {r["access_code"] for r in cur.fetchall() or []}
    code = _generate_access_code(existing)
    cur.execute(
        """
        INSERT INTO play_groups (tournament_id, training_id, start_hole, access_code, category, status)
        VALUES (%s, %s, %s, %s, %s, 'pending')
        RETURNING id
        """,
        (group.get("tournament_id"), group.get("training_id"), group["start_hole"], code, group.get("category")),
    )
    group_id = cur.fetchone()["id"]
    rows = []
    for position, player in enumerate(group.get("players") or []):
        pid = int(player["player_id"])
        rows.append(
            (
                group_id,
                pid,
                position,
                player.get("course_handicap"),
                player.get("tee_color"),
                pid == group.get("responsible_player_id"),
            )
        )
    if rows:
        execute_values(
            cur,
            """
            INSERT INTO group_players (group_id, player_id, position, course_handicap, tee_color, is_responsible)
            VALUES %s
            """,
            rows,
        )
    return {"group_id": group_id, "access_code": code}


def _insert_with_fresh_code(conn, insert: Callable[[Any], Dict[str, Any]]) -> Dict[str, Any]:
    """Run ``insert`` in its own transaction, retrying when the access code clashes.

    Codes are picked from a read of the existing ones, so two concurrent
    creations can still draw the same code; the loser rolls back and redraws.
    """
    for attempt in range(1, ACCESS_CODE_ATTEMPTS + 1):
        with conn.cursor(cursor_factory=RealDictCursor) as cur:
            try:
                created = insert(cur)
            except pg_errors.ForeignKeyViolation as e:
                conn.rollback()
                raise NotFoundError("Unknown tournament, course or player for this group") from e
            except pg_errors.UniqueViolation as e:
                conn.rollback()
                if not _is_access_code_clash(e):
                    raise ValidationError("A player is listed twice in this group") from e
                if attempt == ACCESS_CODE_ATTEMPTS:
                    raise ConflictError("Could not allocate a unique access code; please retry") from e
                continue
        conn.commit()
        return created
    raise ConflictError("Could not allocate a unique access code; please retry")  # pragma: no cover


def create_training(training: Dict[str, Any], group: Dict[str, Any]) -> Dict[str, Any]:
    """Create a training round and its single scoring group."""
    def insert(cur) -> Dict[str, Any]:
        cur.execute(
            "INSERT INTO trainings (name, date, course_id) VALUES (%s, %s, %s) RETURNING id",
            (training.get("name"), training.get("date"), training.get("course_id")),
        )
        training_id = cur.fetchone()["id"]
        created = _insert_group(cur, {**group, "training_id": training_id, "tournament_id": None})
        return {"training_id": training_id, **created}

    with _get_conn() as conn:
        return _insert_with_fresh_code(conn, insert)


# -- groups ------------------------------------------------------------------

def _group_players(cur, group_id: int) -> List[Dict[str, Any]]:
    cur.execute(
        """
        SELECT gp.player_id, p.full_name, gp.course_handicap, gp.tee_color, gp.is_responsible
        FROM group_players gp
        JOIN players p ON gp.player_id = p.id
        WHERE gp.group_id = %s
        ORDER BY gp.position, gp.player_id
        """,
        (group_id,),
    )
    return [dict(r) for r in cur.fetchall() or []]


def list_groups(tournament_id: int) -> List[Dict[str, Any]]:
    with _get_conn() as conn, conn.cursor(cursor_factory=RealDictCursor) as cur:
        cur.execute(
            """
            SELECT id AS group_id, tournament_id, start_hole, access_code, category, status
            FROM play_groups
            WHERE tournament_id = %s
            ORDER BY start_hole, id
            """,
            (tournament_id,),
        )
        groups = [dict(r) for r in cur.fetchall() or []]
        for group in groups:
            group["players"] = _group_players(cur, group["group_id"])
        return groups


def create_group(group: Dict[str, Any]) -> Dict[str, Any]:
    with _get_conn() as conn:
        return _insert_with_fresh_code(conn, lambda cur: _insert_group(cur, group))


def delete_group(group_id: int) -> bool:
    with _get_conn() as conn, conn.cursor() as cur:
        cur.execute("DELETE FROM play_groups WHERE id = %s", (group_id,))
        deleted = (cur.rowcount or 0) > 0
        conn.commit()
    return deleted


def set_group_handicaps(group_id: int, handicaps: Dict[int, Optional[int]]) -> int:
    """Store course handicaps for members of one group; returns rows updated."""
    with _get_conn() as conn, conn.cursor(cursor_factory=RealDictCursor) as cur:
        cur.execute("SELECT player_id FROM group_players WHERE group_id = %s", (group_id,))
        members = {int(r["player_id"]) for r in cur.fetchall() or []}
        if not members:
            raise NotFoundError(f"Group {group_id} not found")
        strangers = sorted(pid for pid in handicaps if pid not in members)
        if strangers:
            raise ValidationError(
                "Handicaps given for players outside this group", player_ids=strangers
            )
        rows = [(int(group_id), int(pid), value) for pid, value in handicaps.items()]
        updated = 0
        if rows:
            execute_values(
                cur,
                """
                UPDATE group_players AS gp
                SET course_handicap = v.course_handicap
                FROM (VALUES %s) AS v(group_id, player_id, course_handicap)
                WHERE gp.group_id = v.group_id
                  AND gp.player_id = v.player_id
                """,
                rows,
                template="(%s, %s, %s::integer)",
            )
            updated = cur.rowcount or 0
        conn.commit()
    return updated


_SNAPSHOT_SQL = """
    SELECT g.id AS group_id, g.start_hole, g.status, g.category, g.access_code,
           g.tournament_id, g.training_id,
           COALESCE(t.name, tr.name) AS event_name,
           c.id AS course_id, c.name AS course_name
    FROM play_groups g
    LEFT JOIN tournaments t ON g.tournament_id = t.id
    LEFT JOIN trainings tr ON g.training_id = tr.id
    JOIN courses c ON c.id = COALESCE(t.course_id, tr.course_id)
"""


def _load_snapshot(cur, where: str, param: Any) -> Optional[Dict[str, Any]]:
    cur.execute(_SNAPSHOT_SQL + " WHERE " + where, (param,))
    row = cur.fetchone()
    if not row:
        return None
    snapshot = dict(row)
    snapshot["players"] = _group_players(cur, snapshot["group_id"])
    cur.execute(
        """
        SELECT player_id, hole_number, strokes
        FROM scores
        WHERE group_id = %s
        ORDER BY hole_number, player_id
        """,
        (snapshot["group_id"],),
    )
    snapshot["scores"] = [dict(r) for r in cur.fetchall() or []]
    snapshot["holes"] = _fetch_holes(cur, snapshot["course_id"])
    return snapshot


def get_scorecard(access_code: str) -> Optional[Dict[str, Any]]:
    """Scorecard snapshot (group, players, scores, holes) for an access code."""
    with _get_conn() as conn, conn.cursor(cursor_factory=RealDictCursor) as cur:
        return _load_snapshot(cur, "g.access_code = %s", access_code)


def _lock_group(cur, group_id: int) -> Dict[str, Any]:
    """Take the per-group row lock and return the group's snapshot.

    Waits at most SCORE_LOCK_TIMEOUT_MS for a concurrent writer.
    """
    lock_ms = _env_int("SCORE_LOCK_TIMEOUT_MS", 5000)
    try:
        cur.execute("SET LOCAL lock_timeout = %s", (f"{lock_ms}ms",))
        cur.execute("SELECT id FROM play_groups WHERE id = %s FOR UPDATE", (group_id,))
    except pg_errors.LockNotAvailable as e:
        raise ConflictError(
            "Another scorer is saving this group; reload the scorecard and try again",
            group_id=group_id,
        ) from e
    if cur.fetchone() is None:
        raise NotFoundError(f"Group {group_id} not found")
    snapshot = _load_snapshot(cur, "g.id = %s", group_id)
    if snapshot is None:
        raise NotFoundError(f"Group {group_id} not found")
    return snapshot


def apply_hole_scores(
    group_id: int,
    hole_number: int,
    scores: Dict[int, int],
    check: Callable[[Dict[str, Any]], str],
) -> Dict[str, Any]:
    """Write one hole's strokes for a group atomically.

    Holds the group row lock while ``check`` validates the write against the
    freshly read snapshot and returns the group status to store. Raising from
    ``check`` aborts the transaction with nothing written.
    """
    with _get_conn() as conn, conn.cursor(cursor_factory=RealDictCursor) as cur:
        snapshot = _lock_group(cur, group_id)
        new_status = check(snapshot)
        stored = {
            int(s["player_id"]): int(s["strokes"])
            for s in snapshot.get("scores") or []
            if int(s["hole_number"]) == int(hole_number)
        }
        # Identical resubmissions leave the stored rows untouched
        rows = [
            (group_id, int(pid), int(hole_number), int(strokes))
            for pid, strokes in scores.items()
            if stored.get(int(pid)) != int(strokes)
        ]
        if rows:
            execute_values(
                cur,
                """
                INSERT INTO scores (group_id, player_id, hole_number, strokes)
                VALUES %s
                ON CONFLICT (group_id, player_id, hole_number) DO UPDATE SET
                    strokes = EXCLUDED.strokes
                """,
                rows,
            )
        if new_status != snapshot["status"]:
            cur.execute("UPDATE play_groups SET status = %s WHERE id = %s", (new_status, group_id))
        if snapshot.get("tournament_id") is not None:
            cur.execute(
                "UPDATE tournaments SET status = 'in_progress' WHERE id = %s AND status = 'scheduled'",
                (snapshot["tournament_id"],),
            )
        conn.commit()
    return {
        "group_id": group_id,
        "hole_number": int(hole_number),
        "status": new_status,
        "previous_status": snapshot["status"],
    }


def update_group_status(group_id: int, transition: Callable[[Dict[str, Any]], str]) -> Dict[str, Any]:
    """Change a group's status under its row lock; ``transition`` picks the new value."""
    with _get_conn() as conn, conn.cursor(cursor_factory=RealDictCursor) as cur:
        snapshot = _lock_group(cur, group_id)
        new_status = transition(snapshot)
        if new_status != snapshot["status"]:
            cur.execute("UPDATE play_groups SET status = %s WHERE id = %s", (new_status, group_id))
        conn.commit()
    return {"group_id": group_id, "status": new_status, "previous_status": snapshot["status"]}


# -- leaderboard and history -------------------------------------------------

def get_leaderboard_data(tournament_id: int) -> Optional[Dict[str, Any]]:
    """Return the tournament, its course holes and every player's scores.

    Players are ordered by player id so ties keep a stable order.
    """
    with _get_conn() as conn, conn.cursor(cursor_factory=RealDictCursor) as cur:
        cur.execute(
            "SELECT id AS tournament_id, name, date, status, course_id, categories FROM tournaments WHERE id = %s",
            (tournament_id,),
        )
        row = cur.fetchone()
        if not row:
            return None
        tournament = _tournament_row(row)
        holes = _fetch_holes(cur, tournament["course_id"])
        cur.execute(
            """
            SELECT gp.player_id, p.full_name, p.gender, gp.course_handicap, g.id AS group_id, g.category
            FROM group_players gp
            JOIN play_groups g ON gp.group_id = g.id
            JOIN players p ON gp.player_id = p.id
            WHERE g.tournament_id = %s
            ORDER BY gp.player_id, g.id
            """,
            (tournament_id,),
        )
        players = [dict(r) for r in cur.fetchall() or []]
        cur.execute(
            """
            SELECT s.group_id, s.player_id, s.hole_number, s.strokes
            FROM scores s
            JOIN play_groups g ON s.group_id = g.id
            WHERE g.tournament_id = %s
            """,
            (tournament_id,),
        )
        scores: Dict[Tuple[int, int], Dict[int, int]] = {}
        for s in cur.fetchall() or []:
            scores.setdefault((s["group_id"], s["player_id"]), {})[int(s["hole_number"])] = int(s["strokes"])
        for player in players:
            player["scores"] = scores.get((player["group_id"], player["player_id"]), {})
    return {"tournament": tournament, "holes": holes, "players": players}


def list_player_history(player_id: int) -> List[Dict[str, Any]]:
    with _get_conn() as conn, conn.cursor(cursor_factory=RealDictCursor) as cur:
        cur.execute(
            """
            SELECT DISTINCT t.id AS tournament_id, t.name, t.date, c.name AS course_name
            FROM tournaments t
            JOIN play_groups g ON t.id = g.tournament_id
            JOIN group_players gp ON g.id = gp.group_id
            JOIN courses c ON t.course_id = c.id
            WHERE gp.player_id = %s AND t.status = 'completed'
            ORDER BY t.date DESC, t.id DESC
            """,
            (player_id,),
        )
        out = []
        for r in cur.fetchall() or []:
            item = dict(r)
            item["date"] = _date_to_str(item.get("date"))
            out.append(item)
        return out


def get_player_tournament_detail(player_id: int, tournament_id: int) -> Optional[Dict[str, Any]]:
    """Holes (with the player's tee yardage) and strokes for one player's round."""
    with _get_conn() as conn, conn.cursor(cursor_factory=RealDictCursor) as cur:
        cur.execute(
            """
            SELECT g.id AS group_id, gp.course_handicap, gp.tee_color, t.course_id, t.name AS tournament_name
            FROM group_players gp
            JOIN play_groups g ON gp.group_id = g.id
            JOIN tournaments t ON g.tournament_id = t.id
            WHERE gp.player_id = %s AND g.tournament_id = %s
            ORDER BY g.id
            LIMIT 1
            """,
            (player_id, tournament_id),
        )
        row = cur.fetchone()
        if not row:
            return None
        entry = dict(row)
        holes = _fetch_holes(cur, entry["course_id"])
        for hole in holes:
            hole["yardage"] = next(
                (t["yardage"] for t in hole.get("tees") or [] if t["color"] == entry.get("tee_color")),
                None,
            )
        cur.execute(
            "SELECT hole_number, strokes FROM scores WHERE group_id = %s AND player_id = %s",
            (entry["group_id"], player_id),
        )
        scores = {int(s["hole_number"]): int(s["strokes"]) for s in cur.fetchall() or []}
    return {
        "player_id": player_id,
        "tournament_id": tournament_id,
        "tournament_name": entry.get("tournament_name"),
        "course_handicap": entry.get("course_handicap"),
        "tee_color": entry.get("tee_color"),
        "holes": holes,
        "scores": scores,
    }


def list_player_rounds(player_id: int) -> List[Dict[str, Any]]:
    """Per-hole strokes and par for each completed tournament the player scored."""
    with _get_conn() as conn, conn.cursor(cursor_factory=RealDictCursor) as cur:
        cur.execute(
            """
            SELECT g.tournament_id, gp.course_handicap, s.hole_number, s.strokes, h.par
            FROM group_players gp
            JOIN play_groups g ON gp.group_id = g.id
            JOIN tournaments t ON g.tournament_id = t.id
            JOIN scores s ON s.group_id = g.id AND s.player_id = gp.player_id
            JOIN holes h ON h.course_id = t.course_id AND h.hole_number = s.hole_number
            WHERE gp.player_id = %s AND t.status = 'completed'
            ORDER BY g.tournament_id, s.hole_number
            """,
            (player_id,),
        )
        rounds: Dict[int, Dict[str, Any]] = {}
        for r in cur.fetchall() or []:
            rnd = rounds.setdefault(
                r["tournament_id"],
                {"tournament_id": r["tournament_id"], "course_handicap": r["course_handicap"], "holes": []},
            )
            rnd["holes"].append({"hole_number": r["hole_number"], "par": r["par"], "strokes": r["strokes"]})
    return list(rounds.values())
