import pytest

from stats_api.modules.stats.service import save_user_stats, stat_to_wire, stats_to_wire
from stats_api.modules.stats.store import ConflictError, StoreError


@pytest.mark.parametrize(
    "value,expected",
    [
        (None, ""),
        (12000, "12000"),
        (0, "0"),
        (20.0, "20"),
        (35.5, "35.5"),
        (0.1, "0.1"),
    ],
)
def test_stat_to_wire(value, expected):
    assert stat_to_wire(value) == expected


def test_stats_to_wire_only_maps_stat_columns():
    row = {"id": 7, "hp": 100, "crit_rate": 5.5, "updated_at": "x"}
    assert stats_to_wire(row) == {
        "hp": "100",
        "attack": "",
        "defense": "",
        "dmg_bonus": "",
        "crit_rate": "5.5",
        "crit_damage": "",
    }


def test_save_user_stats_writes_user_and_snapshot(store):
    result = save_user_stats(
        store,
        user_id="u1",
        username="Alice",
        character_id="c1",
        character_name="Jinhsi",
        stats={"hp": 12000},
    )
    assert result["created"] is True
    assert store.get_user("u1")["username"] == "Alice"
    assert store.get_stats("u1", "c1")["hp"] == 12000


def test_save_user_stats_is_atomic_when_stats_write_fails(store, monkeypatch):
    def boom(*args, **kwargs):
        raise StoreError("disk full")

    monkeypatch.setattr(store, "save_stats", boom)

    with pytest.raises(StoreError):
        save_user_stats(
            store,
            user_id="u1",
            username="Alice",
            character_id="c1",
            character_name="Jinhsi",
            stats={"hp": 1},
        )
    assert store.get_user("u1") is None


def test_save_user_stats_username_conflict_leaves_no_snapshot(store):
    store.save_user("u1", "Alice")
    with pytest.raises(ConflictError):
        save_user_stats(
            store,
            user_id="u2",
            username="Alice",
            character_id="c1",
            character_name="Jinhsi",
            stats={"hp": 1},
        )
    assert store.get_stats("u2", "c1") is None
