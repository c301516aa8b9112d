from flask import Blueprint, current_app, request
from datetime import datetime
import os
import time

from .courses import normalize_holes, require_full_stroke_index
from .errors import BirdifyError, ConflictError, NotFoundError, TransientStoreError, ValidationError
from .scorecard import ProgressionGate, scores_by_player
from .scoring import _as_int, compute_leaderboard, hole_breakdown, parse_course_handicap, parse_hole_number, parse_strokes
from .stats import compute_player_stats
from .datastore import (
    list_players as ds_list_players,
    get_player as ds_get_player,
    create_player as ds_create_player,
    list_courses as ds_list_courses,
    get_course as ds_get_course,
    create_course as ds_create_course,
    delete_course as ds_delete_course,
    list_tournaments as ds_list_tournaments,
    get_tournament as ds_get_tournament,
    create_tournament as ds_create_tournament,
    delete_tournament as ds_delete_tournament,
    set_tournament_status as ds_set_tournament_status,
    create_training as ds_create_training,
    list_groups as ds_list_groups,
    create_group as ds_create_group,
    delete_group as ds_delete_group,
    set_group_handicaps as ds_set_group_handicaps,
    get_scorecard as ds_get_scorecard,
    apply_hole_scores as ds_apply_hole_scores,
    update_group_status as ds_update_group_status,
    get_leaderboard_data as ds_get_leaderboard_data,
    list_player_history as ds_list_player_history,
    get_player_tournament_detail as ds_get_player_tournament_detail,
    list_player_rounds as ds_list_player_rounds,
)


bp = Blueprint('main', __name__)

TOURNAMENT_STATUSES = ('scheduled', 'in_progress', 'completed')

# Leaderboards are polled by every viewer; keep the last computation briefly
_LEADERBOARD_CACHE: dict[tuple[int, str], tuple[float, dict]] = {}
_LEADERBOARD_TTL = int(os.environ.get('CACHE_TTL_LEADERBOARD', '10'))  # seconds


def _cache_get_leaderboard(tournament_id: int, view: str) -> dict | None:
    key = (int(tournament_id), view)
    entry = _LEADERBOARD_CACHE.get(key)
    if not entry:
        return None
    exp, value = entry
    if exp < time.time():
        _LEADERBOARD_CACHE.pop(key, None)
        return None
    return value


def _cache_set_leaderboard(tournament_id: int, view: str, body: dict) -> None:
    _LEADERBOARD_CACHE[(int(tournament_id), view)] = (time.time() + _LEADERBOARD_TTL, body)


def _cache_clear_all() -> None:
    _LEADERBOARD_CACHE.clear()


@bp.errorhandler(BirdifyError)
def handle_birdify_error(err: BirdifyError):
    if isinstance(err, TransientStoreError):
        current_app.logger.warning("store_unavailable path=%s cause=%r", request.path, err.__cause__)
    return err.to_dict(), err.status_code


def _payload() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _required_text(data: dict, field: str) -> str:
    value = data.get(field)
    value = value.strip() if isinstance(value, str) else ''
    if not value:
        raise ValidationError(f"'{field}' is required")
    return value


def _optional_text(data: dict, field: str) -> str | None:
    value = data.get(field)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"'{field}' must be text")
    return value.strip() or None


def _parse_date(value) -> str:
    try:
        return datetime.strptime(str(value or '').strip(), '%Y-%m-%d').date().isoformat()
    except ValueError:
        raise ValidationError(f"Invalid date '{value}'. Expected YYYY-MM-DD.") from None


@bp.route('/health/db')
def health_db():
    """Database connectivity health check.

    Attempts to connect using the ``DATABASE_URL`` environment variable and
    returns basic server/user info. Always returns HTTP 200 with a JSON body
    describing connection status.
    """
    url = os.environ.get('DATABASE_URL')
    if not url:
        return {
            'connected': False,
            'status': 'no_database_url',
            'message': 'DATABASE_URL is not set.'
        }
    try:
        import psycopg2  # type: ignore
        with psycopg2.connect(url, connect_timeout=5) as conn:
            with conn.cursor() as cur:
                cur.execute('SELECT current_user, current_database(), version()')
                user, db, ver = cur.fetchone()
            return {
                'connected': True,
                'status': 'ok',
                'user': user,
                'database': db,
                'server_version': (ver or '').split('\n')[0],
            }
    except Exception as e:  # pragma: no cover - best-effort health output
        return {
            'connected': False,
            'status': 'error',
            'error': str(e),
        }


# -- players, courses, tournaments, groups -----------------------------------

@bp.route('/api/players')
def players():
    return {'players': ds_list_players()}


@bp.route('/api/players', methods=['POST'])
def create_player():
    data = _payload()
    player = {
        'full_name': _required_text(data, 'full_name'),
        'email': _optional_text(data, 'email'),
        'gender': data.get('gender'),
        'handicap_index': data.get('handicap_index'),
    }
    return ds_create_player(player), 201


@bp.route('/api/courses')
def courses():
    return {'courses': ds_list_courses()}


@bp.route('/api/courses/<int:course_id>')
def course_detail(course_id):
    course = ds_get_course(course_id)
    if course is None:
        raise NotFoundError(f"Course {course_id} not found")
    return course


@bp.route('/api/courses', methods=['POST'])
def create_course():
    data = _payload()
    course = {
        'name': _required_text(data, 'name'),
        'location': _optional_text(data, 'location'),
        'holes': normalize_holes(data.get('holes')),
    }
    created = ds_create_course(course)
    current_app.logger.info("course_created id=%s name=%s", created.get('course_id'), course['name'])
    return created, 201


@bp.route('/api/courses/<int:course_id>', methods=['DELETE'])
def delete_course(course_id):
    if not ds_delete_course(course_id):
        raise NotFoundError(f"Course {course_id} not found")
    return {'status': 'ok'}


@bp.route('/api/tournaments')
def tournaments():
    status = request.args.get('status')
    if status and status not in TOURNAMENT_STATUSES:
        raise ValidationError(f"Unknown tournament status '{status}'")
    return {'tournaments': ds_list_tournaments(status=status)}


@bp.route('/api/tournaments', methods=['POST'])
def create_tournament():
    """Create a tournament on a course whose stroke indexes are complete."""
    data = _payload()
    name = _required_text(data, 'name')
    date = _parse_date(data.get('date'))
    course_id = _as_int(data.get('course_id'), 'course_id')
    course = ds_get_course(course_id)
    if course is None:
        raise NotFoundError(f"Course {course_id} not found")
    require_full_stroke_index(course.get('holes') or [])
    categories = data.get('categories') or []
    if not isinstance(categories, list) or not all(isinstance(c, str) and c.strip() for c in categories):
        raise ValidationError("'categories' must be a list of names")
    created = ds_create_tournament({
        'name': name,
        'date': date,
        'course_id': course_id,
        'categories': [c.strip() for c in categories],
    })
    return created, 201


@bp.route('/api/tournaments/<int:tournament_id>', methods=['DELETE'])
def delete_tournament(tournament_id):
    if not ds_delete_tournament(tournament_id):
        raise NotFoundError(f"Tournament {tournament_id} not found")
    _cache_clear_all()
    return {'status': 'ok'}


@bp.route('/api/tournaments/<int:tournament_id>/finish', methods=['POST'])
def finish_tournament(tournament_id):
    if not ds_set_tournament_status(tournament_id, 'completed'):
        raise NotFoundError(f"Tournament {tournament_id} not found")
    _cache_clear_all()
    current_app.logger.info("tournament_finished id=%s", tournament_id)
    return {'status': 'ok'}


@bp.route('/api/tournaments/<int:tournament_id>/groups')
def tournament_groups(tournament_id):
    if ds_get_tournament(tournament_id) is None:
        raise NotFoundError(f"Tournament {tournament_id} not found")
    return {'groups': ds_list_groups(tournament_id)}


def _group_members(data: dict) -> list[dict]:
    raw_players = data.get('players')
    if not isinstance(raw_players, list) or not raw_players:
        raise ValidationError("A group needs at least one player")
    members: list[dict] = []
    seen: set[int] = set()
    for raw in raw_players:
        raw = raw if isinstance(raw, dict) else {'player_id': raw}
        pid = _as_int(raw.get('player_id'), 'player_id')
        if pid in seen:
            raise ValidationError(f"Player {pid} is listed twice in this group")
        seen.add(pid)
        members.append({
            'player_id': pid,
            'tee_color': raw.get('tee_color'),
            'course_handicap': parse_course_handicap(raw.get('course_handicap')),
        })
    return members


@bp.route('/api/groups', methods=['POST'])
def create_group():
    data = _payload()
    tournament_id = _as_int(data.get('tournament_id'), 'tournament_id')
    tournament = ds_get_tournament(tournament_id)
    if tournament is None:
        raise NotFoundError(f"Tournament {tournament_id} not found")
    start_hole = parse_hole_number(data.get('start_hole'))
    members = _group_members(data)
    category = _optional_text(data, 'category')
    allowed = tournament.get('categories') or []
    if category and allowed and category not in allowed:
        raise ValidationError(f"Unknown category '{category}' for this tournament")
    responsible = data.get('responsible_player_id')
    created = ds_create_group({
        'tournament_id': tournament_id,
        'start_hole': start_hole,
        'category': category,
        'players': members,
        'responsible_player_id': _as_int(responsible, 'responsible_player_id') if responsible is not None else None,
    })
    _cache_clear_all()
    current_app.logger.info(
        "group_created id=%s tournament=%s start_hole=%s players=%d",
        created.get('group_id'), tournament_id, start_hole, len(members),
    )
    return created, 201


@bp.route('/api/groups/<int:group_id>', methods=['DELETE'])
def delete_group(group_id):
    if not ds_delete_group(group_id):
        raise NotFoundError(f"Group {group_id} not found")
    _cache_clear_all()
    return {'status': 'ok'}


@bp.route('/api/groups/handicaps', methods=['POST'])
def update_group_handicaps():
    data = _payload()
    group_id = _as_int(data.get('group_id'), 'group_id')
    raw = data.get('handicaps')
    if not isinstance(raw, dict) or not raw:
        raise ValidationError("'handicaps' must map player ids to course handicaps")
    handicaps = {_as_int(pid, 'player_id'): parse_course_handicap(value) for pid, value in raw.items()}
    updated = ds_set_group_handicaps(group_id, handicaps)
    _cache_clear_all()
    return {'status': 'ok', 'updated': updated}


@bp.route('/api/trainings', methods=['POST'])
def create_training():
    """Create a practice round with one group scored like a tournament group."""
    data = _payload()
    course_id = _as_int(data.get('course_id'), 'course_id')
    if ds_get_course(course_id) is None:
        raise NotFoundError(f"Course {course_id} not found")
    training = {
        'name': _optional_text(data, 'name') or 'Training',
        'date': _parse_date(data.get('date')),
        'course_id': course_id,
    }
    group = {
        'start_hole': parse_hole_number(data.get('start_hole', 1)),
        'players': _group_members(data),
        'category': None,
    }
    return ds_create_training(training, group), 201


# -- scorecard ---------------------------------------------------------------

def _load_scorecard(access_code: str) -> dict:
    snapshot = ds_get_scorecard(access_code)
    if snapshot is None:
        raise NotFoundError("Access code not found", access_code=access_code)
    return snapshot


@bp.route('/api/scorecard/<access_code>')
def scorecard(access_code):
    """Scorecard snapshot plus the gate state the scoring wizard needs."""
    snapshot = _load_scorecard(access_code)
    gate = ProgressionGate.from_snapshot(snapshot)
    return {**snapshot, **gate.describe()}


@bp.route('/api/scorecard/<access_code>/navigate')
def scorecard_navigate(access_code):
    snapshot = _load_scorecard(access_code)
    gate = ProgressionGate.from_snapshot(snapshot)
    step = gate.navigate(request.args.get('step', gate.current_step()))
    hole = gate.sequence[step]
    by_player = scores_by_player(snapshot.get('scores') or [])
    return {
        'step': step,
        'hole_number': hole,
        'locked': gate.is_locked(step),
        'scores': {str(pid): by_player.get(pid, {}).get(hole) for pid in gate.player_ids},
    }


def _write_hole(group_id: int, hole: int, entries: dict, require_complete: bool) -> dict:
    """Run one hole write through the gate under the group lock."""
    def check(snapshot: dict) -> str:
        gate = ProgressionGate.from_snapshot(snapshot)
        return gate.check_submission(hole, entries, require_complete=require_complete)

    try:
        result = ds_apply_hole_scores(group_id, hole, entries, check)
    except (ValidationError, ConflictError) as e:
        current_app.logger.warning("hole_scores_refused group=%s hole=%s reason=%s", group_id, hole, e.message)
        raise
    _cache_clear_all()
    current_app.logger.info(
        "hole_scores_saved group=%s hole=%s players=%d status=%s",
        group_id, hole, len(entries), result.get('status'),
    )
    if result.get('status') != result.get('previous_status'):
        current_app.logger.info(
            "group_status group=%s %s->%s", group_id, result.get('previous_status'), result.get('status')
        )
    return result


@bp.route('/api/scores', methods=['POST'])
def record_score():
    """Record one player's strokes on the current hole without confirming it."""
    data = _payload()
    group_id = _as_int(data.get('group_id'), 'group_id')
    player_id = _as_int(data.get('player_id'), 'player_id')
    hole = parse_hole_number(data.get('hole_number'))
    strokes = parse_strokes(data.get('strokes'))
    result = _write_hole(group_id, hole, {player_id: strokes}, require_complete=False)
    return {'status': 'ok', **result}


@bp.route('/api/scores/hole', methods=['POST'])
def submit_hole_scores():
    """Confirm a hole: every member's strokes, written all-or-nothing."""
    data = _payload()
    group_id = _as_int(data.get('group_id'), 'group_id')
    hole = parse_hole_number(data.get('hole_number'))
    raw_scores = data.get('scores')
    if not isinstance(raw_scores, list):
        raise ValidationError("'scores' must be a list of {player_id, strokes}")
    entries: dict[int, int] = {}
    for item in raw_scores:
        item = item if isinstance(item, dict) else {}
        pid = _as_int(item.get('player_id'), 'player_id')
        if pid in entries:
            raise ValidationError(f"Player {pid} appears twice for hole {hole}")
        entries[pid] = parse_strokes(item.get('strokes'))
    result = _write_hole(group_id, hole, entries, require_complete=True)
    return {'status': 'ok', **result}


@bp.route('/api/groups/finish', methods=['POST'])
def finish_group():
    group_id = _as_int(_payload().get('group_id'), 'group_id')
    result = ds_update_group_status(group_id, lambda s: ProgressionGate.from_snapshot(s).finish())
    _cache_clear_all()
    current_app.logger.info("group_status group=%s %s->%s", group_id, result['previous_status'], result['status'])
    return {'status': 'ok', **result}


@bp.route('/api/groups/reopen', methods=['POST'])
def reopen_group():
    """Put a finished group back into editing mode."""
    group_id = _as_int(_payload().get('group_id'), 'group_id')
    result = ds_update_group_status(group_id, lambda s: ProgressionGate.from_snapshot(s).reopen())
    _cache_clear_all()
    current_app.logger.info("group_status group=%s %s->%s", group_id, result['previous_status'], result['status'])
    return {'status': 'ok', **result}


# -- leaderboard, history, stats ---------------------------------------------

@bp.route('/api/leaderboard/<int:tournament_id>')
@bp.route('/api/tournaments/<int:tournament_id>/leaderboard')
def leaderboard(tournament_id):
    view = (request.args.get('view') or 'net').strip().lower()
    cached = _cache_get_leaderboard(tournament_id, view)
    if cached is not None:
        return cached
    data = ds_get_leaderboard_data(tournament_id)
    if data is None:
        raise NotFoundError(f"Tournament {tournament_id} not found")
    board, categories = compute_leaderboard(data['players'], data['holes'], view)
    tournament = data['tournament']
    body = {
        'tournament_id': tournament_id,
        'tournament_name': tournament.get('name'),
        'tournament_status': tournament.get('status'),
        'view': view,
        'leaderboard': board,
        'categories': categories,
    }
    current_app.logger.info("leaderboard_computed tournament=%s view=%s players=%d", tournament_id, view, len(board))
    _cache_set_leaderboard(tournament_id, view, body)
    return body


@bp.route('/api/history/player/<int:player_id>')
def player_history(player_id):
    return {'tournaments': ds_list_player_history(player_id)}


@bp.route('/api/history/player/<int:player_id>/tournament/<int:tournament_id>')
def player_tournament_detail(player_id, tournament_id):
    detail = ds_get_player_tournament_detail(player_id, tournament_id)
    if detail is None:
        raise NotFoundError(f"Player {player_id} did not play tournament {tournament_id}")
    holes = hole_breakdown(detail['scores'], detail['holes'], detail.get('course_handicap'))
    played = [h for h in holes if h['strokes'] is not None]
    return {
        'player_id': player_id,
        'tournament_id': tournament_id,
        'tournament_name': detail.get('tournament_name'),
        'course_handicap': detail.get('course_handicap'),
        'tee_color': detail.get('tee_color'),
        'holes': played,
    }


@bp.route('/api/players/<int:player_id>/stats')
def player_stats(player_id):
    if ds_get_player(player_id) is None:
        raise NotFoundError(f"Player {player_id} not found")
    return compute_player_stats(ds_list_player_rounds(player_id))
