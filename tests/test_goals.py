"""
目标状态测试
"""
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "SST"))

from errors import ValidationError
from goals import create_goal, goal_progress, refresh_goals, update_goal
from models import Goal, GoalStatus, GoalType, MeasurementSnapshot

NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)


@pytest.fixture
def goal():
    return create_goal(GoalType.LENGTH, 15, NOW + timedelta(days=30), "达到 15cm",
                       current_value=12, now=NOW)


def test_progress_and_active_status(goal):
    assert goal.progress == pytest.approx(0.8)
    assert goal.status is GoalStatus.ACTIVE
    assert update_goal(goal, 12, NOW + timedelta(days=10)).status is GoalStatus.ACTIVE


def test_expires_after_target_date(goal):
    expired = update_goal(goal, 12, NOW + timedelta(days=31))
    assert expired.status is GoalStatus.EXPIRED
    assert expired.progress == pytest.approx(0.8)


def test_completes_when_reached(goal):
    done = update_goal(goal, 15.5, NOW + timedelta(days=5))
    assert done.status is GoalStatus.COMPLETED
    assert done.progress == 1.0


def test_terminal_goals_unchanged(goal):
    done = update_goal(goal, 15, NOW)
    assert update_goal(done, 1, NOW + timedelta(days=90)) is done

    expired = update_goal(goal, 12, NOW + timedelta(days=40))
    assert update_goal(expired, 20, NOW + timedelta(days=41)) is expired


def test_progress_clamped():
    assert goal_progress(-3, 10) == 0.0
    assert goal_progress(30, 10) == 1.0
    assert goal_progress(5, 0) == 0.0


@pytest.mark.parametrize("target, days, description", [
    (0, 30, "x"),
    (-5, 30, "x"),
    (15, -1, "x"),
    (15, 30, "   "),
])
def test_create_goal_validation(target, days, description):
    with pytest.raises(ValidationError):
        create_goal(GoalType.GIRTH, target, NOW + timedelta(days=days), description, now=NOW)


def test_create_goal_accepts_iso_date():
    goal = create_goal('girth', 12, '2024-07-01T00:00:00Z', "周长", now=NOW)
    assert goal.type is GoalType.GIRTH
    assert goal.target_date == datetime(2024, 7, 1, tzinfo=timezone.utc)


def test_refresh_goals_from_latest_snapshot(goal):
    snapshots = [
        MeasurementSnapshot(id='b', timestamp=NOW + timedelta(days=2), length=14.0),
        MeasurementSnapshot(id='a', timestamp=NOW + timedelta(days=1), length=13.0),
        MeasurementSnapshot(id='c', timestamp=NOW + timedelta(days=3), girth=9.0),
    ]
    (refreshed,) = refresh_goals([goal], snapshots, NOW + timedelta(days=3))
    assert refreshed.current_value == 14.0
    assert refreshed.progress == pytest.approx(14 / 15)


def test_goal_round_trip(goal):
    assert Goal.from_dict(goal.to_dict()) == goal
