"""Tests for data models."""

from datetime import date

import pytest

from trainlog_sync.errors import ValidationError
from trainlog_sync.models import (
    Movement,
    MovementRepCountUnit,
    MovementSet,
    MovementSetStatus,
    MovementWeightUnit,
    Program,
    ProgramUser,
    SavedMovement,
    TrainingLog,
    Weekday,
    parse_number,
)

# 2024-01-03 was a Wednesday
WEDNESDAY = date(2024, 1, 3)


class TestParseNumber:
    """Tests for numeric input parsing."""

    @pytest.mark.parametrize("value, expected", [("80", 80.0), ("72.5", 72.5), (90, 90.0)])
    def test_valid(self, value, expected):
        assert parse_number(value) == expected

    @pytest.mark.parametrize("value", ["", "abc", "nan", "inf", None, True])
    def test_invalid(self, value):
        with pytest.raises(ValidationError):
            parse_number(value, "bodyweight")


class TestMovement:
    """Tests for Movement model."""

    def test_movement_to_dict(self):
        """Test movement serialization."""
        movement = Movement(
            name="Plank",
            timestamp=10,
            author_user_id="alice",
            log_id="log-1",
            saved_movement_id="sm-1",
            saved_movement_name="Plank",
            position=2,
            rep_count_unit=MovementRepCountUnit.SECONDS,
            sets=[MovementSet(rep_count_expected=60, uuid="s1")],
        )
        data = movement.to_dict()

        assert data["rep_count_unit"] == "Seconds"
        assert data["weight_unit"] == "Lb"
        assert data["is_favorited"] is False
        assert data["sets"][0] == {
            "uuid": "s1",
            "status": "unattempted",
            "weight": 0,
            "rep_count_actual": 0,
            "rep_count_expected": 60,
            "rep_count_max_expected": 0,
        }
        assert "id" not in data

    def test_movement_from_dict_defaults(self):
        """Missing optional fields fall back to defaults."""
        movement = Movement.from_dict(
            {
                "name": "Squat",
                "timestamp": 1,
                "author_user_id": "alice",
                "log_id": "log-1",
                "saved_movement_id": "sm-1",
                "saved_movement_name": "Squat",
                "position": 0,
                "sets": [{"uuid": "s1", "status": "completed", "weight": 100}],
            },
            id="m1",
        )

        assert movement.id == "m1"
        assert movement.weight_unit is MovementWeightUnit.POUNDS
        assert movement.sets[0].status is MovementSetStatus.COMPLETED
        assert movement.owner_id == "alice"

    def test_set_ids_unique_by_default(self):
        assert MovementSet().uuid != MovementSet().uuid


class TestRecords:
    """Tests for record ownership and serialization."""

    def test_training_log_round_trip(self):
        log = TrainingLog(timestamp=5, author_user_id="alice", bodyweight=80, note="ok")
        assert TrainingLog.from_dict(log.to_dict(), id="l1") == TrainingLog(
            timestamp=5, author_user_id="alice", bodyweight=80, note="ok", id="l1"
        )

    def test_saved_movement_count_not_stored(self):
        saved = SavedMovement(name="Row", author_user_id="alice", last_seen=1, count=7)
        assert "count" not in saved.to_dict()
        assert SavedMovement.from_dict(saved.to_dict()).count == 0

    def test_program_user_owned_by_user_uid(self):
        assert ProgramUser(user_uid="alice").owner_id == "alice"


class TestProgram:
    """Tests for Program model."""

    def _program(self, **days):
        return Program(
            name="PPL",
            author_user_id="alice",
            timestamp=0,
            days_of_week={Weekday(day): tid for day, tid in days.items()},
        )

    def test_weekday_of(self):
        assert Weekday.of(WEDNESDAY) is Weekday.WEDNESDAY
        assert Weekday.of(date(2024, 1, 7)) is Weekday.SUNDAY

    def test_next_training_later_this_week(self):
        """Wednesday with Tue/Thu/Sat training picks Thursday, day 2."""
        program = self._program(tuesday="t1", thursday="t2", saturday="t3")

        next_training = program.next_training(WEDNESDAY)

        assert next_training.template_id == "t2"
        assert next_training.text == "PPL, Thursday, Day 2"

    def test_next_training_today(self):
        program = self._program(wednesday="t1")
        assert program.next_training(WEDNESDAY).text == "PPL, Wednesday, Day 1"

    def test_rest_days_skipped(self):
        program = self._program(monday="t1", thursday=None, friday="t2")
        assert program.next_training(WEDNESDAY).template_id == "t2"

    def test_nothing_left_this_week(self):
        program = self._program(monday="t1")
        assert program.next_training(WEDNESDAY) is None

    def test_program_round_trip(self):
        program = self._program(monday="t1", friday=None)
        program.template_ids = ["t1"]
        data = program.to_dict()

        assert data["days_of_week"] == {"monday": "t1", "friday": None}
        assert Program.from_dict(data, id=program.id) == program
