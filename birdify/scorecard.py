"""Hole play order and the per-group progression gate.

Progress is never stored as a counter: it is derived from the recorded
scores every time a gate is built, so it cannot drift from the score rows.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional

from .errors import ConflictError, ValidationError
from .scoring import HOLES_PER_ROUND, parse_hole_number, parse_strokes

LAST_STEP = HOLES_PER_ROUND - 1

STATUS_PENDING = "pending"
STATUS_COMPLETED = "completed"
STATUS_EDITING = "editing"
GROUP_STATUSES = (STATUS_PENDING, STATUS_COMPLETED, STATUS_EDITING)


def hole_sequence(start_hole: Any) -> List[int]:
    """Return the 18 hole numbers in play order for a shotgun start.

    >>> hole_sequence(16)[:5]
    [16, 17, 18, 1, 2]
    """
    try:
        start = parse_hole_number(start_hole)
    except ValidationError:
        raise ValidationError(f"Start hole must be between 1 and 18, got {start_hole!r}") from None
    return [((start - 1 + i) % HOLES_PER_ROUND) + 1 for i in range(HOLES_PER_ROUND)]


def scores_by_player(rows: Iterable[Dict[str, Any]]) -> Dict[int, Dict[int, int]]:
    """Index score rows (player_id, hole_number, strokes) as player -> hole -> strokes."""
    out: Dict[int, Dict[int, int]] = {}
    for row in rows:
        strokes = row.get("strokes")
        if strokes is None:
            continue
        out.setdefault(int(row["player_id"]), {})[int(row["hole_number"])] = int(strokes)
    return out


def is_hole_complete(hole: int, scores: Mapping[int, Mapping[int, int]], player_ids: Iterable[int]) -> bool:
    """A hole is complete only when every member has strokes > 0 on it."""
    ids = list(player_ids)
    if not ids:
        return False
    for pid in ids:
        strokes = (scores.get(pid) or {}).get(hole)
        if not isinstance(strokes, int) or strokes <= 0:
            return False
    return True


class ProgressionGate:
    """Decides which hole a group may score next and which holes are locked."""

    def __init__(
        self,
        start_hole: Any,
        players: Iterable[Dict[str, Any]],
        scores: Mapping[int, Mapping[int, int]],
        status: str = STATUS_PENDING,
    ):
        if status not in GROUP_STATUSES:
            raise ValidationError(f"Unknown group status '{status}'")
        self.sequence = hole_sequence(start_hole)
        self.players = [dict(p) for p in players]
        self.player_ids = [int(p["player_id"]) for p in self.players]
        self.scores: Dict[int, Dict[int, int]] = {
            pid: dict(scores.get(pid) or {}) for pid in self.player_ids
        }
        self.status = status

    @classmethod
    def from_snapshot(cls, snapshot: Dict[str, Any]) -> "ProgressionGate":
        """Build a gate from a scorecard snapshot as returned by the datastore."""
        return cls(
            snapshot["start_hole"],
            snapshot.get("players") or [],
            scores_by_player(snapshot.get("scores") or []),
            snapshot.get("status") or STATUS_PENDING,
        )

    @property
    def editing(self) -> bool:
        return self.status == STATUS_EDITING

    @property
    def completed(self) -> bool:
        return self.status == STATUS_COMPLETED

    def step_of(self, hole_number: int) -> int:
        return self.sequence.index(hole_number)

    def highest_confirmed_step(self) -> int:
        """Last step of the contiguous complete prefix of the sequence, or -1."""
        highest = -1
        for step, hole in enumerate(self.sequence):
            if not is_hole_complete(hole, self.scores, self.player_ids):
                break
            highest = step
        return highest

    def current_step(self) -> int:
        return min(self.highest_confirmed_step() + 1, LAST_STEP)

    def is_locked(self, step: int) -> bool:
        if self.completed:
            return True
        if self.editing:
            return False
        return step < self.current_step()

    def locked_steps(self) -> List[int]:
        return [step for step in range(HOLES_PER_ROUND) if self.is_locked(step)]

    def navigate(self, step: Any) -> int:
        """Clamp a requested step to the range the scorer may view."""
        try:
            requested = int(step)
        except (TypeError, ValueError):
            return self.current_step()
        upper = LAST_STEP if self.editing else self.current_step()
        return max(0, min(requested, upper))

    def missing_players(self, hole: int, pending: Optional[Mapping[int, int]] = None) -> List[Dict[str, Any]]:
        pending = pending or {}
        missing = []
        for player in self.players:
            pid = int(player["player_id"])
            strokes = pending.get(pid, self.scores[pid].get(hole))
            if not strokes:
                missing.append({"player_id": pid, "full_name": player.get("full_name")})
        return missing

    def check_submission(
        self,
        hole_number: Any,
        strokes_by_player: Mapping[Any, Any],
        require_complete: bool = True,
    ) -> str:
        """Validate a write of strokes for one hole against the gate.

        Args:
            hole_number: Official hole number 1..18.
            strokes_by_player: Player id -> strokes for that hole.
            require_complete: True for a hole confirmation, where the hole
                must be complete once merged with stored scores. False for a
                single partial entry.

        Returns:
            The group status after the write is applied.

        Raises:
            ValidationError: Bad values, a non-member player, a hole beyond
                the current step, or an incomplete hole.
            ConflictError: A locked hole, or any hole of a finished round,
                resubmitted with different strokes. Identical strokes are
                accepted and leave the status unchanged.
        """
        hole = parse_hole_number(hole_number)
        entries: Dict[int, int] = {}
        for raw_pid, raw_strokes in strokes_by_player.items():
            try:
                pid = int(raw_pid)
            except (TypeError, ValueError):
                raise ValidationError(f"Invalid player id {raw_pid!r}") from None
            if pid not in self.scores:
                raise ValidationError(f"Player {pid} is not a member of this group", player_id=pid)
            entries[pid] = parse_strokes(raw_strokes)
        if not entries:
            raise ValidationError("No scores submitted", hole_number=hole)

        if self.completed:
            changed = sorted(pid for pid, strokes in entries.items() if self.scores[pid].get(hole) != strokes)
            if changed:
                raise ConflictError(
                    "This round is finished; reopen it to edit scores",
                    hole_number=hole,
                    player_ids=changed,
                )
            return self.status

        step = self.step_of(hole)
        if not self.editing:
            current = self.current_step()
            if step > current:
                raise ValidationError(
                    f"Hole {hole} is out of range; the current hole is {self.sequence[current]}",
                    hole_number=hole,
                    current_hole=self.sequence[current],
                )
            if step < current:
                changed = sorted(pid for pid, strokes in entries.items() if self.scores[pid].get(hole) != strokes)
                if changed:
                    raise ConflictError(
                        f"Hole {hole} is already confirmed with different scores",
                        hole_number=hole,
                        player_ids=changed,
                    )

        if require_complete:
            missing = self.missing_players(hole, entries)
            if missing:
                names = ", ".join(str(m["full_name"] or m["player_id"]) for m in missing)
                raise ValidationError(
                    f"Fill in every player's score before confirming hole {hole} (missing: {names})",
                    hole_number=hole,
                    missing_players=missing,
                )

        if self.editing:
            return self.status
        merged = {pid: dict(holes) for pid, holes in self.scores.items()}
        for pid, strokes in entries.items():
            merged[pid][hole] = strokes
        after = ProgressionGate(self.sequence[0], self.players, merged, self.status)
        if after.highest_confirmed_step() == LAST_STEP:
            return STATUS_COMPLETED
        return self.status

    def finish(self) -> str:
        """Status after an explicit finish; finishing twice is harmless."""
        return STATUS_COMPLETED

    def reopen(self) -> str:
        """Status after re-opening a finished round for edits."""
        if self.status == STATUS_PENDING:
            raise ValidationError("This round is still in progress; there is nothing to reopen")
        return STATUS_EDITING

    def describe(self) -> Dict[str, Any]:
        current = self.current_step()
        return {
            "status": self.status,
            "editing": self.editing,
            "sequence": list(self.sequence),
            "highest_confirmed_step": self.highest_confirmed_step(),
            "current_step": current,
            "current_hole": self.sequence[current],
            "locked_steps": self.locked_steps(),
        }


__all__ = [
    "LAST_STEP",
    "STATUS_PENDING",
    "STATUS_COMPLETED",
    "STATUS_EDITING",
    "hole_sequence",
    "scores_by_player",
    "is_hole_complete",
    "ProgressionGate",
]
