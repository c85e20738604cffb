from types import SimpleNamespace

from servertracker.services.server_registry import resolve_player_count
from servertracker.services.session_ledger import (
    SeenPlayer,
    SessionClose,
    normalize_observed_players,
    plan_transitions,
    resolve_started_at,
)


def open_row(id, name, started_at=0, steam_id=None):
    return SimpleNamespace(id=id, player_name=name, started_at=started_at, steam_id=steam_id)


def test_new_player_starts_session_at_poll_time():
    plan = plan_transitions([], [SeenPlayer(name="Alice")], 5000)

    assert len(plan.to_create) == 1
    start = plan.to_create[0]
    assert start.player_name == "Alice"
    assert start.started_at == 5000
    assert start.last_seen_at == 5000
    assert plan.to_update == []
    assert plan.to_close == []


def test_present_player_is_touched_and_absent_player_closed():
    rows = [open_row(1, "Alice"), open_row(2, "Bob")]

    plan = plan_transitions(rows, [SeenPlayer(name="Alice")], 7000)

    assert [t.session_id for t in plan.to_update] == [1]
    assert plan.to_update[0].last_seen_at == 7000
    assert plan.to_close == [SessionClose(session_id=2, ended_at=7000)]
    assert plan.to_create == []


def test_steam_id_only_fills_missing_value():
    rows = [open_row(1, "Alice", steam_id=None), open_row(2, "Bob", steam_id="765611")]
    observed = [
        SeenPlayer(name="Alice", steam_id="765600"),
        SeenPlayer(name="Bob", steam_id="999999"),
    ]

    plan = plan_transitions(rows, observed, 100)

    touches = {t.session_id: t for t in plan.to_update}
    assert touches[1].steam_id == "765600"
    # já conhecido: nunca sobrescreve
    assert touches[2].steam_id is None


def test_empty_poll_closes_everything():
    rows = [open_row(1, "Alice"), open_row(2, "Bob")]

    plan = plan_transitions(rows, [], 9000)

    assert sorted(c.session_id for c in plan.to_close) == [1, 2]
    assert all(c.ended_at == 9000 for c in plan.to_close)


def test_extra_open_rows_for_same_name_are_closed():
    rows = [open_row(5, "Alice", started_at=2000), open_row(3, "Alice", started_at=1000)]

    plan = plan_transitions(rows, [SeenPlayer(name="Alice")], 3000)

    assert [t.session_id for t in plan.to_update] == [3]
    assert plan.to_close == [SessionClose(session_id=5, ended_at=3000)]
    assert plan.to_create == []


def test_normalize_keeps_first_occurrence_and_uses_placeholder():
    players = [
        {"name": " Alice ", "steam_id": "  "},
        {"name": "Alice", "steam_id": "765"},
        {"name": "alice"},
        {"name": ""},
        {"name": None},
    ]

    seen = normalize_observed_players(players, "(unnamed player)")

    assert [p.name for p in seen] == ["Alice", "alice", "(unnamed player)"]
    assert seen[0].steam_id is None


def test_resolve_started_at():
    assert resolve_started_at(100_000, 30) == 70_000
    assert resolve_started_at(100_000, 0) == 100_000
    assert resolve_started_at(100_000, None) == 100_000
    assert resolve_started_at(100_000, -5) == 100_000
    assert resolve_started_at(100_000, float("nan")) == 100_000
    # resultado não positivo -> descartado
    assert resolve_started_at(100_000, 100) == 100_000
    assert resolve_started_at(100_000, 500) == 100_000


def test_resolve_player_count():
    assert resolve_player_count(10, 3) == 10
    assert resolve_player_count(None, 3) == 3
    assert resolve_player_count(float("nan"), 3) == 3
    assert resolve_player_count("12", 3) == 3
    assert resolve_player_count(0, 3) == 0
