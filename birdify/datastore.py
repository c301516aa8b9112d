from typing import Any, Callable, Dict, List, Optional

# Datastore proxy
# Route handlers import from here; every call is forwarded to datastore_pg at
# call time so tests can monkeypatch the PostgreSQL functions in place.

from . import datastore_pg as _pg


def normalize_access_code(code: Optional[str]) -> str:
    """Access codes are stored upper-case; scorers often type them in lower case."""
    return (code or "").strip().upper()


def list_players() -> List[Dict[str, Any]]:
    return _pg.list_players()


def get_player(player_id: int) -> Optional[Dict[str, Any]]:
    return _pg.get_player(player_id)


def create_player(player: Dict[str, Any]) -> Dict[str, Any]:
    return _pg.create_player(player)


def list_courses() -> List[Dict[str, Any]]:
    return _pg.list_courses()


def get_course(course_id: int) -> Optional[Dict[str, Any]]:
    return _pg.get_course(course_id)


def create_course(course: Dict[str, Any]) -> Dict[str, Any]:
    return _pg.create_course(course)


def delete_course(course_id: int) -> bool:
    return _pg.delete_course(course_id)


def list_tournaments(status: Optional[str] = None) -> List[Dict[str, Any]]:
    return _pg.list_tournaments(status=status)


def get_tournament(tournament_id: int) -> Optional[Dict[str, Any]]:
    return _pg.get_tournament(tournament_id)


def create_tournament(tournament: Dict[str, Any]) -> Dict[str, Any]:
    return _pg.create_tournament(tournament)


def delete_tournament(tournament_id: int) -> bool:
    return _pg.delete_tournament(tournament_id)


def set_tournament_status(tournament_id: int, status: str) -> bool:
    return _pg.set_tournament_status(tournament_id, status)


def create_training(training: Dict[str, Any], group: Dict[str, Any]) -> Dict[str, Any]:
    return _pg.create_training(training, group)


def list_groups(tournament_id: int) -> List[Dict[str, Any]]:
    return _pg.list_groups(tournament_id)


def create_group(group: Dict[str, Any]) -> Dict[str, Any]:
    return _pg.create_group(group)


def delete_group(group_id: int) -> bool:
    return _pg.delete_group(group_id)


def set_group_handicaps(group_id: int, handicaps: Dict[int, Optional[int]]) -> int:
    return _pg.set_group_handicaps(group_id, handicaps)


def get_scorecard(access_code: str) -> Optional[Dict[str, Any]]:
    code = normalize_access_code(access_code)
    if not code:
        return None
    return _pg.get_scorecard(code)


def apply_hole_scores(
    group_id: int,
    hole_number: int,
    scores: Dict[int, int],
    check: Callable[[Dict[str, Any]], str],
) -> Dict[str, Any]:
    return _pg.apply_hole_scores(group_id, hole_number, scores, check)


def update_group_status(group_id: int, transition: Callable[[Dict[str, Any]], str]) -> Dict[str, Any]:
    return _pg.update_group_status(group_id, transition)


def get_leaderboard_data(tournament_id: int) -> Optional[Dict[str, Any]]:
    return _pg.get_leaderboard_data(tournament_id)


def list_player_history(player_id: int) -> List[Dict[str, Any]]:
    return _pg.list_player_history(player_id)


def get_player_tournament_detail(player_id: int, tournament_id: int) -> Optional[Dict[str, Any]]:
    return _pg.get_player_tournament_detail(player_id, tournament_id)


def list_player_rounds(player_id: int) -> List[Dict[str, Any]]:
    return _pg.list_player_rounds(player_id)
