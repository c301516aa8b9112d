import pytest

from birdify.errors import ValidationError
from birdify.scoring import (
    compute_leaderboard,
    hole_breakdown,
    net_for_hole,
    net_total,
    parse_course_handicap,
    player_summary,
    rank_players,
    strokes_received,
)

from conftest import PARS, make_holes

PAR_BY_HOLE = {n: PARS[n - 1] for n in range(1, 19)}


def _player(pid, scores, handicap=None, category=None, name=None):
    return {
        "player_id": pid,
        "full_name": name or f"Player {pid}",
        "group_id": 1,
        "category": category,
        "course_handicap": handicap,
        "scores": scores,
    }


def _flat(strokes=4, holes=range(1, 19)):
    return {h: strokes for h in holes}


def test_strokes_received_single_allocation():
    assert strokes_received(10, 10) == 1
    assert strokes_received(10, 11) == 0
    assert strokes_received(0, 1) == 0
    assert strokes_received(None, 1) == 0
    assert strokes_received(18, 18) == 1


def test_strokes_received_above_eighteen():
    assert strokes_received(20, 1) == 2
    assert strokes_received(20, 2) == 2
    assert strokes_received(20, 3) == 1
    assert strokes_received(36, 18) == 2
    assert sum(strokes_received(24, si) for si in range(1, 19)) == 24


def test_net_for_hole_needs_stroke_index():
    assert net_for_hole(5, 10, 3) == 4
    assert net_for_hole(5, 10, None) is None


def test_net_total_is_flat_subtraction():
    assert net_total(80, 10) == 70
    assert net_total(75, None) == 75
    assert net_total(None, 10) is None


@pytest.mark.parametrize("value,expected", [(None, None), ("", None), (0, 0), ("12", 12)])
def test_parse_course_handicap(value, expected):
    assert parse_course_handicap(value) == expected


@pytest.mark.parametrize("value", [-1, "abc", 3.5, "--4", "\u00b2"])
def test_parse_course_handicap_rejects(value):
    with pytest.raises(ValidationError):
        parse_course_handicap(value)


def test_hole_breakdown_rows():
    holes = make_holes()
    rows = hole_breakdown({1: 5, 2: 4}, holes, 10)
    assert len(rows) == 18
    first = rows[0]
    # Hole 1 has stroke index 7
    assert first["strokes_received"] == 1
    assert first["net_strokes"] == 4
    assert rows[2]["strokes"] is None
    assert rows[2]["net_strokes"] is None


def test_hole_breakdown_without_stroke_index():
    rows = hole_breakdown({1: 5}, make_holes(stroke_index=None), 10)
    assert rows[0]["strokes_received"] is None
    assert rows[0]["net_strokes"] is None


def test_player_summary_full_round():
    summary = player_summary(_player(1, _flat(5), handicap=10), PAR_BY_HOLE)
    assert summary["through"] == 18
    assert summary["total_strokes"] == 90
    assert summary["net_score"] == 80
    assert summary["front_nine"] == 45
    assert summary["back_nine"] == 45
    assert summary["to_par_gross"] == 18
    assert summary["to_par_net"] == 8
    assert summary["last9"] == 45
    assert summary["last6"] == 30
    assert summary["last3"] == 15
    assert summary["last1"] == 5


def test_player_summary_partial_round_compares_par_played():
    summary = player_summary(_player(1, {1: 4, 2: 5}), PAR_BY_HOLE)
    assert summary["through"] == 2
    assert summary["to_par_gross"] == 1
    assert summary["net_score"] == 9


def test_player_summary_without_scores():
    summary = player_summary(_player(1, {}), PAR_BY_HOLE)
    assert summary["through"] == 0
    assert summary["total_strokes"] is None
    assert summary["net_score"] is None


def test_net_view_uses_handicap():
    a = player_summary(_player(1, _flat(5), handicap=10), PAR_BY_HOLE)  # gross 90, net 80
    b = player_summary(_player(2, _flat(4), handicap=None), PAR_BY_HOLE)  # gross 72, net 72
    net = rank_players([a, b], "net")
    assert [r["player_id"] for r in net] == [2, 1]
    gross = rank_players([a, b], "gross")
    assert [r["player_id"] for r in gross] == [2, 1]

    c = player_summary(_player(3, _flat(5), handicap=20), PAR_BY_HOLE)  # gross 90, net 70
    net = rank_players([a, b, c], "net")
    assert [r["player_id"] for r in net] == [3, 2, 1]
    assert [r["rank"] for r in net] == [1, 2, 3]


def test_last_nine_breaks_tie():
    # Both shoot 72; player 2 is better over holes 10-18
    p1 = _flat(4)
    p2 = _flat(4)
    p2[1] = 5
    p2[10] = 3
    rows = [player_summary(_player(1, p1), PAR_BY_HOLE), player_summary(_player(2, p2), PAR_BY_HOLE)]
    ranked = rank_players(rows, "gross")
    assert [r["player_id"] for r in ranked] == [2, 1]
    assert [r["rank"] for r in ranked] == [1, 2]
    assert ranked[0]["tiebreak"] == "Last 9"
    assert ranked[1]["tiebreak"] == "Last 9"


def test_last_hole_breaks_tie_after_last_three():
    p1 = _flat(4)
    p2 = _flat(4)
    # Same last 9, last 6 and last 3; hole 18 decides
    p1[16], p1[18] = 5, 3
    p2[16], p2[18] = 4, 4
    p2[17] = 4
    rows = [player_summary(_player(1, p1), PAR_BY_HOLE), player_summary(_player(2, p2), PAR_BY_HOLE)]
    ranked = rank_players(rows, "gross")
    assert [r["player_id"] for r in ranked] == [1, 2]
    assert ranked[0]["tiebreak"] == "Last hole"


def test_full_tie_shares_rank_and_keeps_input_order():
    rows = [player_summary(_player(pid, _flat(4)), PAR_BY_HOLE) for pid in (7, 3, 5)]
    ranked = rank_players(rows, "gross")
    assert [r["player_id"] for r in ranked] == [7, 3, 5]
    assert [r["rank"] for r in ranked] == [1, 1, 1]
    assert all(r["tiebreak"] is None for r in ranked)


def test_ranking_is_deterministic():
    rows = [player_summary(_player(pid, _flat(4 + pid % 2)), PAR_BY_HOLE) for pid in range(1, 7)]
    first = rank_players(rows, "net")
    for _ in range(5):
        assert rank_players(rows, "net") == first


def test_players_without_scores_rank_last():
    rows = [
        player_summary(_player(1, {}), PAR_BY_HOLE),
        player_summary(_player(2, _flat(6)), PAR_BY_HOLE),
    ]
    ranked = rank_players(rows, "net")
    assert [r["player_id"] for r in ranked] == [2, 1]
    assert ranked[1]["net_score"] is None


def test_unknown_view_is_refused():
    with pytest.raises(ValidationError):
        rank_players([], "stableford")
    with pytest.raises(ValidationError):
        compute_leaderboard([], make_holes(), "stableford")


def test_leaderboard_empty_until_someone_scores():
    board, categories = compute_leaderboard([_player(1, {}), _player(2, {})], make_holes())
    assert board == []
    assert categories == {}


def test_leaderboard_ranks_categories_separately():
    players = [
        _player(1, _flat(5), handicap=10, category="M1"),
        _player(2, _flat(4), category="M1"),
        _player(3, _flat(6), handicap=40, category="F1"),
        _player(4, _flat(4)),
    ]
    board, categories = compute_leaderboard(players, make_holes(), "net")
    assert [r["player_id"] for r in board] == [3, 2, 4, 1]
    assert [r["rank"] for r in board] == [1, 2, 2, 4]
    assert list(categories) == ["F1", "M1"]
    assert [r["player_id"] for r in categories["M1"]] == [2, 1]
    assert [r["rank"] for r in categories["M1"]] == [1, 2]
    assert categories["F1"][0]["rank"] == 1
