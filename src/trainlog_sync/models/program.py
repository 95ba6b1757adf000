"""Training program data models."""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum


class Weekday(str, Enum):
    """Days of the week, Sunday first."""

    SUNDAY = "sunday"
    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"

    @classmethod
    def of(cls, day: date) -> "Weekday":
        # date.weekday() is Monday=0
        return SORTED_WEEKDAYS[(day.weekday() + 1) % 7]


SORTED_WEEKDAYS = list(Weekday)


@dataclass
class NextTraining:
    """The next scheduled program day."""

    template_id: str
    text: str


@dataclass
class Program:
    """A training program: an ordered list of log templates."""

    name: str
    author_user_id: str
    timestamp: int
    template_ids: list[str] = field(default_factory=list)
    # weekday -> template id (None on rest days)
    days_of_week: dict[Weekday, str | None] = field(default_factory=dict)
    id: str | None = None

    @property
    def owner_id(self) -> str:
        return self.author_user_id

    def next_training(self, today: date | None = None) -> NextTraining | None:
        """Get the template for the next upcoming training day this week.

        If today is Wednesday and the program trains Tue, Thu and Sat, the
        Thursday template is returned, labelled as day 2 of the week.

        Returns:
            The next training, or None if nothing is left this week
        """
        today = today or date.today()
        start = SORTED_WEEKDAYS.index(Weekday.of(today))
        for weekday in SORTED_WEEKDAYS[start:]:
            template_id = self.days_of_week.get(weekday)
            if not template_id:
                continue
            day_index = sum(
                1
                for day in SORTED_WEEKDAYS[: SORTED_WEEKDAYS.index(weekday) + 1]
                if self.days_of_week.get(day)
            )
            text = f"{self.name}, {weekday.value.capitalize()}, Day {day_index}"
            return NextTraining(template_id=template_id, text=text)
        return None

    def to_dict(self) -> dict:
        """Convert to dictionary for storage."""
        return {
            "name": self.name,
            "author_user_id": self.author_user_id,
            "timestamp": self.timestamp,
            "template_ids": list(self.template_ids),
            "days_of_week": {day.value: tid for day, tid in self.days_of_week.items()},
        }

    @classmethod
    def from_dict(cls, data: dict, id: str | None = None) -> "Program":
        """Create from dictionary."""
        return cls(
            id=id,
            name=data["name"],
            author_user_id=data["author_user_id"],
            timestamp=data.get("timestamp", 0),
            template_ids=list(data.get("template_ids", [])),
            days_of_week={
                Weekday(day): tid for day, tid in data.get("days_of_week", {}).items()
            },
        )


@dataclass
class ProgramLogTemplate:
    """A program day whose movements are cloned into new training logs."""

    program_id: str
    author_user_id: str
    name: str = ""
    id: str | None = None

    @property
    def owner_id(self) -> str:
        return self.author_user_id

    def to_dict(self) -> dict:
        return {
            "program_id": self.program_id,
            "author_user_id": self.author_user_id,
            "name": self.name,
        }

    @classmethod
    def from_dict(cls, data: dict, id: str | None = None) -> "ProgramLogTemplate":
        return cls(
            id=id,
            program_id=data["program_id"],
            author_user_id=data["author_user_id"],
            name=data.get("name", ""),
        )


@dataclass
class ProgramUser:
    """Per-user settings record holding the active program.

    Exactly one of these exists per user; see ``reconcile_program_user``.
    """

    user_uid: str
    active_program_id: str | None = None
    active_program_name: str | None = None
    id: str | None = None

    @property
    def owner_id(self) -> str:
        return self.user_uid

    def to_dict(self) -> dict:
        return {
            "user_uid": self.user_uid,
            "active_program_id": self.active_program_id,
            "active_program_name": self.active_program_name,
        }

    @classmethod
    def from_dict(cls, data: dict, id: str | None = None) -> "ProgramUser":
        return cls(
            id=id,
            user_uid=data["user_uid"],
            active_program_id=data.get("active_program_id"),
            active_program_name=data.get("active_program_name"),
        )
