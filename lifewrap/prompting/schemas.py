"""
Summary levels and their output schemas.

Each SummaryLevel owns exactly one SchemaDefinition. The schemas are
authored independently per level: a weekly summary tracks habits and
patterns, a year rollup tracks arcs and a reflection, and none of them are
generated from the schema below it.

A model response is accepted only if its JSON keys equal the schema's field
names exactly (see ResponseParser).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class SummaryLevel(str, Enum):
    """Hierarchical summary levels, smallest first."""

    CHUNK = "chunk"
    SESSION = "session"
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"
    YEAR_ROLLUP = "yearRollup"

    @property
    def label(self) -> str:
        return _LEVEL_LABELS[self]

    @property
    def child(self) -> SummaryLevel | None:
        """Level whose outputs are aggregated into this level's input."""
        index = _HIERARCHY.index(self)
        return _HIERARCHY[index - 1] if index > 0 else None

    @property
    def parent(self) -> SummaryLevel | None:
        index = _HIERARCHY.index(self)
        return _HIERARCHY[index + 1] if index + 1 < len(_HIERARCHY) else None

    @property
    def is_rollup(self) -> bool:
        """Day and above aggregate already-summarized text."""
        return _HIERARCHY.index(self) >= _HIERARCHY.index(SummaryLevel.DAY)


_HIERARCHY = [
    SummaryLevel.CHUNK,
    SummaryLevel.SESSION,
    SummaryLevel.DAY,
    SummaryLevel.WEEK,
    SummaryLevel.MONTH,
    SummaryLevel.YEAR,
    SummaryLevel.YEAR_ROLLUP,
]

_LEVEL_LABELS = {
    SummaryLevel.CHUNK: "chunk (a few minutes of one recording)",
    SummaryLevel.SESSION: "session (one complete recording)",
    SummaryLevel.DAY: "day",
    SummaryLevel.WEEK: "week",
    SummaryLevel.MONTH: "month",
    SummaryLevel.YEAR: "year",
    SummaryLevel.YEAR_ROLLUP: "year rollup (the whole year, wrapped)",
}


STRING = "string"
STRING_LIST = "string[]"
OBJECT = "object"


@dataclass(frozen=True)
class SchemaField:
    """One output key: name, JSON type, and what the model should put there."""

    name: str
    type: str
    description: str
    subkeys: tuple[str, ...] = ()

    def __post_init__(self):
        if self.type not in (STRING, STRING_LIST, OBJECT):
            raise ValueError(f"Unsupported field type: {self.type}")
        if self.type == OBJECT and not self.subkeys:
            raise ValueError(f"Object field '{self.name}' needs subkeys")

    def describe(self) -> str:
        if self.type == OBJECT:
            keys = ", ".join(self.subkeys)
            return f"{self.name} (object with keys {keys}): {self.description}"
        return f"{self.name} ({self.type}): {self.description}"


@dataclass(frozen=True)
class SchemaDefinition:
    """
    Ordered field list for one SummaryLevel.

    Attributes:
        level: The level this schema belongs to.
        fields: Output keys, in the order the model should emit them.
        title_field: Short headline key.
        summary_field: Key holding the main prose summary.
    """

    level: SummaryLevel
    fields: tuple[SchemaField, ...]
    title_field: str
    summary_field: str
    _by_name: dict = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        by_name = {f.name: f for f in self.fields}
        if len(by_name) != len(self.fields):
            raise ValueError(f"Duplicate field names in {self.level.value} schema")
        for required in (self.title_field, self.summary_field):
            if required not in by_name:
                raise ValueError(f"{self.level.value} schema lacks '{required}'")
        object.__setattr__(self, "_by_name", by_name)

    @property
    def field_names(self) -> list[str]:
        return [f.name for f in self.fields]

    def get_field(self, name: str) -> SchemaField:
        return self._by_name[name]


def _s(name, description):
    return SchemaField(name, STRING, description)


def _l(name, description):
    return SchemaField(name, STRING_LIST, description)


_SCHEMAS: dict[SummaryLevel, SchemaDefinition] = {
    SummaryLevel.CHUNK: SchemaDefinition(
        level=SummaryLevel.CHUNK,
        fields=(
            _s("headline", "One short line naming what this stretch of talk is about."),
            _s("summary", "Two to four sentences, first person, faithful to what was said."),
            _s("mood", "One or two words for the speaker's mood, or \"unclear\"."),
            _l("topics", "Up to five topics mentioned."),
            _l("people", "Names of people mentioned."),
            _l("actions", "Things the speaker did."),
            _l("plans", "Things the speaker intends to do."),
            _l("open_loops", "Unresolved questions or unfinished items."),
        ),
        title_field="headline",
        summary_field="summary",
    ),
    SummaryLevel.SESSION: SchemaDefinition(
        level=SummaryLevel.SESSION,
        fields=(
            _s("title", "A short title for the whole recording."),
            _s("session_summary", "One paragraph covering the full recording."),
            _l("key_moments", "The most important moments, in order."),
            _s("mood_arc", "How the mood changed from start to end."),
            _l("topics", "Main topics."),
            _l("people", "People mentioned."),
            _l("decisions", "Decisions made."),
            _l("next_actions", "Concrete next steps."),
            _l("open_loops", "Unresolved questions or unfinished items."),
        ),
        title_field="title",
        summary_field="session_summary",
    ),
    SummaryLevel.DAY: SchemaDefinition(
        level=SummaryLevel.DAY,
        fields=(
            _s("daily_headline", "One line capturing the day."),
            _s("daily_summary", "One paragraph summarizing the day across all sessions."),
            _l("top_topics", "Topics that came up most."),
            _l("wins", "Things that went well."),
            _l("stressors", "Sources of stress or friction."),
            _l("health_notes", "Sleep, exercise, food or health observations."),
            _l("relationships", "Notable interactions with people."),
            _l("tomorrow_focus", "What to focus on tomorrow."),
            _l("open_loops", "Unresolved items carried forward."),
        ),
        title_field="daily_headline",
        summary_field="daily_summary",
    ),
    SummaryLevel.WEEK: SchemaDefinition(
        level=SummaryLevel.WEEK,
        fields=(
            _s("weekly_theme", "The theme of the week in a few words."),
            _s("weekly_summary", "One paragraph summarizing the week."),
            _l("top_patterns", "Patterns that repeated across days."),
            _l("wins", "Highlights of the week."),
            _l("challenges", "Difficulties of the week."),
            _l("notable_events", "Events worth remembering."),
            SchemaField(
                "habit_trends",
                OBJECT,
                "Short trend notes per habit area, \"unclear\" if not mentioned.",
                subkeys=("sleep", "fitness", "diet", "work"),
            ),
            _l("next_week_intentions", "Intentions for next week."),
            _l("open_loops", "Unresolved items carried forward."),
        ),
        title_field="weekly_theme",
        summary_field="weekly_summary",
    ),
    SummaryLevel.MONTH: SchemaDefinition(
        level=SummaryLevel.MONTH,
        fields=(
            _s("month_theme", "The theme of the month in a few words."),
            _s("month_summary", "One or two paragraphs summarizing the month."),
            _l("big_wins", "The month's biggest wins."),
            _l("big_challenges", "The month's biggest challenges."),
            _l("progress_markers", "Evidence of progress toward goals."),
            _l("recurring_themes", "Themes that kept coming back."),
            _l("relationships", "How key relationships developed."),
            _l("health_fitness_trends", "Health and fitness trends."),
            _l("next_month_goals", "Goals for next month."),
            _l("open_loops", "Unresolved items carried forward."),
        ),
        title_field="month_theme",
        summary_field="month_summary",
    ),
    SummaryLevel.YEAR: SchemaDefinition(
        level=SummaryLevel.YEAR,
        fields=(
            _s("year_title", "A title for the year."),
            _s("year_summary", "Two or three paragraphs summarizing the year."),
            _l("major_arcs", "The major storylines of the year."),
            _l("biggest_wins", "The biggest wins."),
            _l("biggest_challenges", "The biggest challenges."),
            _l("key_relationships", "The relationships that mattered most."),
            _s("health_overview", "Health and fitness over the year."),
            _s("work_learning_overview", "Work and learning over the year."),
            _l("next_year_focus", "What to focus on next year."),
            _l("open_loops", "Unresolved items carried into next year."),
        ),
        title_field="year_title",
        summary_field="year_summary",
    ),
    SummaryLevel.YEAR_ROLLUP: SchemaDefinition(
        level=SummaryLevel.YEAR_ROLLUP,
        fields=(
            _s("wrap_title", "A memorable title for the wrapped year."),
            _s("wrap_summary", "A warm, factual retelling of the year in one paragraph."),
            _l("defining_moments", "The handful of moments that defined the year."),
            _l("growth_areas", "Where the speaker grew or changed."),
            _l("people_of_the_year", "People who shaped the year."),
            _l("most_discussed_topics", "Topics talked about most."),
            _l("gratitude", "Things the speaker was grateful for."),
            _l("lessons_learned", "Lessons the speaker drew."),
            _s("one_line_reflection", "A single-sentence reflection on the year."),
            _l("carry_forward", "What to carry into next year."),
        ),
        title_field="wrap_title",
        summary_field="wrap_summary",
    ),
}


def schema(level: SummaryLevel) -> SchemaDefinition:
    """Return the schema for a summary level."""
    return _SCHEMAS[SummaryLevel(level)]


def all_schemas() -> list[SchemaDefinition]:
    return [_SCHEMAS[level] for level in _HIERARCHY]
