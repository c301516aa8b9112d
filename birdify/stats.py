"""Player statistics over completed tournament rounds."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List

from .scoring import net_total

EMPTY_STATS: Dict[str, float] = {
    "total_rounds": 0,
    "average_strokes": 0,
    "best_gross": 0,
    "best_net": 0,
    "eagles_or_better": 0,
    "birdies": 0,
    "pars": 0,
    "bogeys": 0,
    "double_bogeys_or_worse": 0,
    "average_par3": 0,
    "average_par4": 0,
    "average_par5": 0,
}


def _average(values: List[int]) -> float:
    if not values:
        return 0
    return round(sum(values) / len(values), 2)


def compute_player_stats(rounds: Iterable[Dict[str, Any]]) -> Dict[str, float]:
    """Summarise a player's rounds.

    Each round provides ``course_handicap`` and ``holes``, a list of
    ``{"hole_number", "par", "strokes"}``. Holes without strokes are skipped
    and a round with no strokes at all does not count.
    """
    played = 0
    gross_totals: List[int] = []
    net_totals: List[int] = []
    all_strokes: List[int] = []
    by_par: Dict[int, List[int]] = {3: [], 4: [], 5: []}
    counts = {"eagles_or_better": 0, "birdies": 0, "pars": 0, "bogeys": 0, "double_bogeys_or_worse": 0}

    for rnd in rounds:
        holes = [h for h in rnd.get("holes") or [] if h.get("strokes")]
        if not holes:
            continue
        played += 1
        gross = sum(int(h["strokes"]) for h in holes)
        gross_totals.append(gross)
        net_totals.append(net_total(gross, rnd.get("course_handicap")))
        for hole in holes:
            strokes = int(hole["strokes"])
            par = int(hole["par"])
            all_strokes.append(strokes)
            by_par.setdefault(par, []).append(strokes)
            diff = strokes - par
            if diff <= -2:
                counts["eagles_or_better"] += 1
            elif diff == -1:
                counts["birdies"] += 1
            elif diff == 0:
                counts["pars"] += 1
            elif diff == 1:
                counts["bogeys"] += 1
            else:
                counts["double_bogeys_or_worse"] += 1

    if not played:
        return dict(EMPTY_STATS)

    return {
        "total_rounds": played,
        "average_strokes": _average(all_strokes),
        "best_gross": min(gross_totals),
        "best_net": min(net_totals),
        **counts,
        "average_par3": _average(by_par[3]),
        "average_par4": _average(by_par[4]),
        "average_par5": _average(by_par[5]),
    }


__all__ = ["compute_player_stats", "EMPTY_STATS"]
