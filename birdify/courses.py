"""Course definition checks."""

from __future__ import annotations

from typing import Any, Dict, List

from .errors import ValidationError
from .scoring import HOLES_PER_ROUND, _as_int, parse_hole_number

MIN_PAR = 3
MAX_PAR = 5


def normalize_holes(raw_holes: Any) -> List[Dict[str, Any]]:
    """Validate a course payload's holes and return them sorted by number.

    Exactly 18 holes numbered 1..18 with par 3..5. Stroke indexes are
    optional but, where given, must be 1..18 and unique. ``tees`` may be a
    ``{color: yardage}`` mapping or a list of ``{"color", "yardage"}``;
    non-positive yardages are dropped.
    """
    if not isinstance(raw_holes, list) or len(raw_holes) != HOLES_PER_ROUND:
        raise ValidationError(f"A course needs exactly {HOLES_PER_ROUND} holes")

    holes: Dict[int, Dict[str, Any]] = {}
    seen_indexes: Dict[int, int] = {}
    for raw in raw_holes:
        if not isinstance(raw, dict):
            raise ValidationError(f"Each hole must be an object, got {raw!r}")
        number = parse_hole_number(raw.get("hole_number"))
        if number in holes:
            raise ValidationError(f"Hole {number} is defined twice")
        par = _as_int(raw.get("par"), f"Par for hole {number}")
        if not MIN_PAR <= par <= MAX_PAR:
            raise ValidationError(f"Par for hole {number} must be between {MIN_PAR} and {MAX_PAR}, got {par}")

        stroke_index = raw.get("stroke_index")
        if stroke_index in (None, ""):
            stroke_index = None
        else:
            stroke_index = _as_int(stroke_index, f"Stroke index for hole {number}")
            if not 1 <= stroke_index <= HOLES_PER_ROUND:
                raise ValidationError(f"Stroke index for hole {number} must be between 1 and 18, got {stroke_index}")
            if stroke_index in seen_indexes:
                raise ValidationError(
                    f"Stroke index {stroke_index} is used by holes {seen_indexes[stroke_index]} and {number}"
                )
            seen_indexes[stroke_index] = number

        tees_raw = raw.get("tees") or []
        if isinstance(tees_raw, dict):
            tees_raw = [{"color": c, "yardage": y} for c, y in tees_raw.items()]
        if not isinstance(tees_raw, list):
            raise ValidationError(f"Tees for hole {number} must be a list or a mapping of color to yardage")
        tees = []
        for tee in tees_raw:
            if not isinstance(tee, dict):
                raise ValidationError(f"Each tee for hole {number} must be an object, got {tee!r}")
            color = tee.get("color")
            color = color.strip() if isinstance(color, str) else ""
            yardage = _as_int(tee.get("yardage") or 0, f"Yardage for hole {number}")
            if color and yardage > 0:
                tees.append({"color": color, "yardage": yardage})

        holes[number] = {"hole_number": number, "par": par, "stroke_index": stroke_index, "tees": tees}
    return [holes[n] for n in sorted(holes)]


def require_full_stroke_index(holes: List[Dict[str, Any]]) -> None:
    """Refuse courses whose stroke indexes are not a permutation of 1..18."""
    indexes = sorted(h.get("stroke_index") for h in holes if h.get("stroke_index") is not None)
    if indexes != list(range(1, HOLES_PER_ROUND + 1)):
        unset = [h["hole_number"] for h in holes if h.get("stroke_index") is None]
        raise ValidationError(
            "Every hole needs a unique stroke index (1-18) before the course can host a tournament",
            holes_without_stroke_index=unset,
        )
