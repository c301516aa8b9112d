"""Handicap, net scoring and leaderboard ranking."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from .errors import ValidationError

HOLES_PER_ROUND = 18

# Tie-break sub-totals by official hole number, applied in this order.
TIEBREAK_CRITERIA: Tuple[Tuple[str, Tuple[int, ...], str], ...] = (
    ("last9", tuple(range(10, 19)), "Last 9"),
    ("last6", tuple(range(13, 19)), "Last 6"),
    ("last3", (16, 17, 18), "Last 3"),
    ("last1", (18,), "Last hole"),
)

RANKING_VIEWS = {"net": "net_score", "gross": "total_strokes"}


def _as_int(value: Any, what: str) -> int:
    """Coerce JSON/form input to ``int`` without accepting floats or bools."""
    if isinstance(value, bool):
        raise ValidationError(f"{what} must be an integer, got {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip()
        if text.lstrip("-").isdigit():
            try:
                return int(text)
            except ValueError:
                # "--4" or non-ASCII digits such as "²"
                pass
    raise ValidationError(f"{what} must be an integer, got {value!r}")


def parse_strokes(value: Any) -> int:
    """Return ``value`` as a stroke count, rejecting zero and negatives."""
    strokes = _as_int(value, "Strokes")
    if strokes < 1:
        raise ValidationError(f"Strokes must be a positive integer, got {strokes}")
    return strokes


def parse_course_handicap(value: Any) -> Optional[int]:
    """Return a non-negative course handicap; ``None`` means not set."""
    if value is None or value == "":
        return None
    handicap = _as_int(value, "Course handicap")
    if handicap < 0:
        raise ValidationError(f"Course handicap must not be negative, got {handicap}")
    return handicap


def parse_hole_number(value: Any) -> int:
    hole = _as_int(value, "Hole number")
    if not 1 <= hole <= HOLES_PER_ROUND:
        raise ValidationError(f"Hole number {hole} is out of range (1-18)")
    return hole


def strokes_received(course_handicap: Optional[int], stroke_index: Optional[int]) -> Optional[int]:
    """Return the handicap strokes a player receives on one hole.

    Every full 18 of course handicap gives one stroke on each hole; the
    remainder gives one more on the holes whose stroke index is within it.
    For handicaps up to 18 this is one stroke where
    ``course_handicap >= stroke_index``.

    Args:
        course_handicap: Player course handicap; ``None`` counts as 0.
        stroke_index: Hole difficulty rank 1..18, or ``None`` when unknown.

    Returns:
        Strokes received, or ``None`` when the stroke index is unknown.
    """
    if stroke_index is None:
        return None
    base, extra = divmod(course_handicap or 0, HOLES_PER_ROUND)
    return base + (1 if extra >= stroke_index else 0)


def net_for_hole(gross: int, course_handicap: Optional[int], stroke_index: Optional[int]) -> Optional[int]:
    received = strokes_received(course_handicap, stroke_index)
    if received is None:
        return None
    return gross - received


def net_total(total_strokes: Optional[int], course_handicap: Optional[int]) -> Optional[int]:
    """Round net used for ranking: flat subtraction of the course handicap."""
    if total_strokes is None:
        return None
    return total_strokes - (course_handicap or 0)


def hole_breakdown(
    scores: Mapping[int, int],
    holes: Iterable[Dict[str, Any]],
    course_handicap: Optional[int],
) -> List[Dict[str, Any]]:
    """Per-hole detail rows with stroke-index net for played holes."""
    rows: List[Dict[str, Any]] = []
    for hole in sorted(holes, key=lambda h: h["hole_number"]):
        number = int(hole["hole_number"])
        strokes = scores.get(number)
        stroke_index = hole.get("stroke_index")
        rows.append(
            {
                "hole_number": number,
                "par": hole.get("par"),
                "stroke_index": stroke_index,
                "yardage": hole.get("yardage"),
                "strokes": strokes,
                "strokes_received": strokes_received(course_handicap, stroke_index),
                "net_strokes": None if strokes is None else net_for_hole(strokes, course_handicap, stroke_index),
            }
        )
    return rows


def player_summary(player: Dict[str, Any], par_by_hole: Mapping[int, int]) -> Dict[str, Any]:
    """Aggregate one player's recorded scores into leaderboard columns.

    ``player["scores"]`` maps hole number to strokes. Par is only summed over
    holes that have a score so partial rounds compare fairly.
    """
    scores = {
        int(hole): int(strokes)
        for hole, strokes in (player.get("scores") or {}).items()
        if strokes is not None
    }
    handicap = player.get("course_handicap")
    through = len(scores)
    total = sum(scores.values()) if through else None
    to_par_gross = None
    to_par_net = None
    if total is not None:
        to_par_gross = total - sum(par_by_hole.get(hole, 0) for hole in scores)
        to_par_net = to_par_gross - (handicap or 0)

    summary = {
        "player_id": player.get("player_id"),
        "full_name": player.get("full_name"),
        "group_id": player.get("group_id"),
        "category": player.get("category"),
        "course_handicap": handicap,
        "scores": scores,
        "through": through,
        "total_strokes": total,
        "front_nine": sum(s for h, s in scores.items() if h <= 9),
        "back_nine": sum(s for h, s in scores.items() if h >= 10),
        "to_par_gross": to_par_gross,
        "to_par_net": to_par_net,
        "net_score": net_total(total, handicap),
    }
    for name, holes, _label in TIEBREAK_CRITERIA:
        summary[name] = sum(scores.get(h, 0) for h in holes)
    return summary


def _missing_last(value: Optional[int]) -> Tuple[bool, int]:
    return (value is None, value if value is not None else 0)


def _rank_key(row: Dict[str, Any], primary: str) -> Tuple[Tuple[bool, int], ...]:
    key = [_missing_last(row.get(primary))]
    for name, _holes, _label in TIEBREAK_CRITERIA:
        key.append(_missing_last(row.get(name)))
    return tuple(key)


def _deciding_criterion(a: Dict[str, Any], b: Dict[str, Any]) -> Optional[str]:
    for name, _holes, label in TIEBREAK_CRITERIA:
        if a.get(name) != b.get(name):
            return label
    return None


def rank_players(rows: Iterable[Dict[str, Any]], view: str = "net") -> List[Dict[str, Any]]:
    """Order player summaries and assign shared ranks.

    Lower is better. Equal primary scores are separated by the ``last9``,
    ``last6``, ``last3`` and ``last1`` sub-totals in turn; rows still equal
    after that share a rank and keep their input order. Missing values rank
    after every numeric value.

    Args:
        rows: Summaries as produced by :func:`player_summary`.
        view: ``"net"`` or ``"gross"``.

    Returns:
        New list of row dicts with ``rank`` and ``tiebreak`` added.
    """
    primary = RANKING_VIEWS.get(view)
    if primary is None:
        raise ValidationError(f"Unknown leaderboard view '{view}'. Expected 'net' or 'gross'.")

    ordered = sorted(rows, key=lambda r: _rank_key(r, primary))
    ranked: List[Dict[str, Any]] = []
    last_key = None
    position = 0
    for idx, row in enumerate(ordered, start=1):
        key = _rank_key(row, primary)
        if key != last_key:
            position = idx
            last_key = key
        ranked.append({**row, "rank": position, "tiebreak": None})

    # Record which sub-total split neighbours that tied on the primary score
    for prev, cur in zip(ranked, ranked[1:]):
        if prev.get(primary) != cur.get(primary):
            continue
        label = _deciding_criterion(prev, cur)
        if label is None:
            continue
        if prev["tiebreak"] is None:
            prev["tiebreak"] = label
        if cur["tiebreak"] is None:
            cur["tiebreak"] = label
    return ranked


def compute_leaderboard(
    players: Iterable[Dict[str, Any]],
    holes: Iterable[Dict[str, Any]],
    view: str = "net",
) -> Tuple[List[Dict[str, Any]], Dict[str, List[Dict[str, Any]]]]:
    """Build the overall and per-category leaderboards for a tournament.

    Args:
        players: Dicts with ``player_id``, ``full_name``, ``group_id``,
            ``category``, ``course_handicap`` and ``scores`` (hole -> strokes).
        holes: Course holes with ``hole_number`` and ``par``.
        view: ``"net"`` or ``"gross"``.

    Returns:
        ``(leaderboard, categories)``. Both are empty when no player has a
        recorded score yet.
    """
    par_by_hole = {int(h["hole_number"]): int(h["par"]) for h in holes}
    summaries = [player_summary(p, par_by_hole) for p in players]
    if not any(s["through"] for s in summaries):
        # Validate the view even when there is nothing to rank
        if view not in RANKING_VIEWS:
            raise ValidationError(f"Unknown leaderboard view '{view}'. Expected 'net' or 'gross'.")
        return [], {}

    leaderboard = rank_players(summaries, view)

    by_category: Dict[str, List[Dict[str, Any]]] = {}
    for summary in summaries:
        name = summary.get("category")
        if name:
            by_category.setdefault(name, []).append(summary)
    categories = {
        name: rank_players(members, view) if any(m["through"] for m in members) else []
        for name, members in sorted(by_category.items())
    }
    return leaderboard, categories


__all__ = [
    "HOLES_PER_ROUND",
    "TIEBREAK_CRITERIA",
    "parse_strokes",
    "parse_course_handicap",
    "parse_hole_number",
    "strokes_received",
    "net_for_hole",
    "net_total",
    "hole_breakdown",
    "player_summary",
    "rank_players",
    "compute_leaderboard",
]
