import pytest


def test_new_repo_is_empty(any_repo):
    assert any_repo.top_scores() == []
    assert any_repo.get_event_state() is None
    assert any_repo.has_score("neo") is False
    assert any_repo.get_score("neo") is None


def test_insert_and_get_score_round_trip(any_repo):
    record = any_repo.insert_score(identity="neo", finish_time_seconds=42, contact="555-0101")
    loaded = any_repo.get_score("neo")

    assert loaded is not None
    assert loaded["id"] == record["id"]
    assert loaded["identity"] == "neo"
    assert loaded["contact"] == "555-0101"
    assert loaded["finish_time_seconds"] == 42
    assert loaded["created_at"].endswith("Z")
    assert any_repo.has_score("neo") is True


def test_contact_is_optional(any_repo):
    any_repo.insert_score(identity="trinity", finish_time_seconds=10)
    assert any_repo.get_score("trinity")["contact"] is None


def test_identity_is_unique(any_repo, db_module):
    any_repo.insert_score(identity="neo", finish_time_seconds=42)

    with pytest.raises(db_module.DuplicateScoreError):
        any_repo.insert_score(identity="neo", finish_time_seconds=7)

    assert any_repo.get_score("neo")["finish_time_seconds"] == 42
    assert len(any_repo.top_scores()) == 1


def test_identity_match_is_exact(any_repo):
    any_repo.insert_score(identity="neo", finish_time_seconds=42)
    assert any_repo.has_score("Neo") is False


def test_top_scores_ordered_fastest_first(any_repo):
    for identity, seconds in [("slow", 90), ("fast", 12), ("mid", 40)]:
        any_repo.insert_score(identity=identity, finish_time_seconds=seconds)

    assert [s["identity"] for s in any_repo.top_scores()] == ["fast", "mid", "slow"]


def test_top_scores_respects_limit(any_repo):
    for i in range(25):
        any_repo.insert_score(identity=f"p{i:02d}", finish_time_seconds=100 - i)

    default = any_repo.top_scores()
    assert len(default) == 20
    assert default[0]["finish_time_seconds"] == 76

    top3 = any_repo.top_scores(limit=3)
    assert [s["identity"] for s in top3] == ["p24", "p23", "p22"]


def test_event_state_round_trip(any_repo, scenario_grid):
    saved = any_repo.save_event_state(
        is_live=True,
        start_time="2026-03-01T12:00:00Z",
        maze=scenario_grid.to_rows(),
        maze_id="scenario-3x3",
    )
    loaded = any_repo.get_event_state()

    assert loaded == saved
    assert loaded["is_live"] is True
    assert loaded["maze"] == [["S", 0, 1], [1, 0, 1], [1, 0, "E"]]
    assert loaded["maze_id"] == "scenario-3x3"


def test_stopping_event_clears_maze(any_repo, scenario_grid):
    any_repo.save_event_state(is_live=True, start_time="2026-03-01T12:00:00Z", maze=scenario_grid.to_rows())
    any_repo.save_event_state(is_live=False)

    loaded = any_repo.get_event_state()
    assert loaded["is_live"] is False
    assert loaded["start_time"] is None
    assert loaded["maze"] is None


def test_event_state_does_not_touch_scores(any_repo):
    any_repo.insert_score(identity="neo", finish_time_seconds=42)
    any_repo.save_event_state(is_live=False)

    assert any_repo.has_score("neo")


def test_equal_times_keep_first_come_order(any_repo):
    for identity in ["zed", "amy", "max"]:
        any_repo.insert_score(identity=identity, finish_time_seconds=30)
    any_repo.insert_score(identity="quick", finish_time_seconds=5)

    assert [s["identity"] for s in any_repo.top_scores()] == ["quick", "zed", "amy", "max"]
