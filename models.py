import datetime
import math
import uuid
from enum import Enum
from typing import Annotated, List, Optional

from pydantic import AfterValidator, BaseModel, BeforeValidator, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class MuscleGroup(str, Enum):
    CHEST = "chest"
    BACK = "back"
    SHOULDERS = "shoulders"
    ARMS = "arms"
    LEGS = "legs"
    CORE = "core"
    FULL_BODY = "full_body"


class EquipmentType(str, Enum):
    BARBELL = "barbell"
    DUMBBELL = "dumbbell"
    MACHINE = "machine"
    BODYWEIGHT = "bodyweight"
    CABLE = "cable"
    KETTLEBELL = "kettlebell"
    OTHER = "other"


class WeightUnit(str, Enum):
    LB = "lb"
    KG = "kg"


class Frequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    CUSTOM = "custom"


def new_id() -> str:
    """Return a new unique identifier for stored records."""
    return uuid.uuid4().hex


def utc_now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def _normalize_unit(value):
    # older routine payloads spell pounds as "lbs"
    if isinstance(value, str) and value.strip().lower() in {"lbs", "pound", "pounds"}:
        return WeightUnit.LB.value
    return value


Unit = Annotated[WeightUnit, BeforeValidator(_normalize_unit)]


def _as_utc(value: datetime.datetime) -> datetime.datetime:
    # naive values are taken to be UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=datetime.timezone.utc)
    return value.astimezone(datetime.timezone.utc)


Timestamp = Annotated[datetime.datetime, AfterValidator(_as_utc)]


def _count_or_zero(value):
    if isinstance(value, bool):
        return int(value)
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if math.isnan(number) or math.isinf(number):
        return 0
    return int(number)


Count = Annotated[int, BeforeValidator(_count_or_zero)]


class LiftLogModel(BaseModel):
    """Base model serialized with camelCase keys and enum values."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
        validate_default=True,
    )

    def to_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class ExerciseFields(LiftLogModel):
    """Fields accepted when creating an exercise."""

    name: str
    muscle_group: MuscleGroup = MuscleGroup.FULL_BODY
    equipment: EquipmentType = EquipmentType.OTHER
    description: Optional[str] = None
    default_weight_unit: Unit = WeightUnit.LB


class Exercise(ExerciseFields):
    id: str
    is_custom: bool = False
    created_at: Timestamp = Field(default_factory=utc_now)
    updated_at: Timestamp = Field(default_factory=utc_now)


class ExerciseSet(LiftLogModel):
    reps: int = Field(ge=0)
    weight: float = Field(ge=0)
    weight_unit: Unit = WeightUnit.LB
    is_personal_record: bool = False


class ExerciseLog(LiftLogModel):
    """A completed exercise performance.

    ``id`` and ``created_at`` are assigned by the repository when the log is
    stored; ``total_volume`` and ``max_weight`` are kept as supplied.
    """

    exercise_id: str
    sets: List[ExerciseSet] = Field(default_factory=list)
    date: Timestamp
    total_volume: float = 0.0
    max_weight: float = 0.0
    routine_id: Optional[str] = None
    notes: Optional[str] = None
    id: Optional[str] = None
    created_at: Optional[Timestamp] = None


class RoutineExercise(LiftLogModel):
    exercise_id: str
    exercise_name: str = ""
    weight: float = 0.0
    weight_unit: Unit = WeightUnit.LB
    target_sets: Count = 0
    target_reps: Count = 0
    reserve_reps: Optional[Count] = None
    notes: Optional[str] = None
    order: int = 0


_WEEKLY_DAYS = {
    Frequency.DAILY.value: 7,
    Frequency.WEEKLY.value: 1,
}


class Routine(LiftLogModel):
    id: str = Field(default_factory=new_id)
    name: str
    program_name: Optional[str] = None
    description: Optional[str] = None
    exercises: List[RoutineExercise] = Field(default_factory=list)
    frequency: Frequency = Frequency.WEEKLY
    days: List[str] = Field(default_factory=list)
    is_active: bool = False
    created_at: Timestamp = Field(default_factory=utc_now)
    updated_at: Timestamp = Field(default_factory=utc_now)

    @field_validator("days", mode="before")
    @classmethod
    def days_or_empty(cls, value):
        return [] if value is None else value

    def is_scheduled_on(self, day_name: str) -> bool:
        """Return True if the routine should be trained on ``day_name``.

        Explicit days take precedence; frequency is only consulted when no
        days are set.
        """
        if self.days:
            return day_name in self.days
        return self.frequency == Frequency.DAILY.value

    def days_per_week(self) -> Optional[int]:
        if self.days:
            return len(set(self.days))
        return _WEEKLY_DAYS.get(self.frequency)


class Program(LiftLogModel):
    name: str
    description: Optional[str] = None


class TrainingState(LiftLogModel):
    in_progress: bool
    started_at: str


class UserPreferences(LiftLogModel):
    weight_unit: WeightUnit = WeightUnit.LB
    theme: str = "dark"
    date_format: str = "MM/DD/YYYY"
    notifications_enabled: bool = True


CATALOG_TIMESTAMP = datetime.datetime(2024, 1, 1, tzinfo=datetime.timezone.utc)

_CATALOG = [
    ("bench_press", "Bench Press", "chest", "barbell", "Flat bench barbell press"),
    ("squat", "Squat", "legs", "barbell", "Back squat"),
    ("deadlift", "Deadlift", "back", "barbell", "Conventional deadlift"),
    ("overhead_press", "Overhead Press", "shoulders", "barbell", "Standing overhead press"),
    ("pull_up", "Pull Up", "back", "bodyweight", "Standard pull-up"),
    ("dumbbell_curl", "Dumbbell Curl", "arms", "dumbbell", "Bicep curl with dumbbells"),
    ("tricep_dip", "Tricep Dip", "arms", "bodyweight", "Parallel bar dips"),
    ("leg_press", "Leg Press", "legs", "machine", "Machine leg press"),
    ("lat_pulldown", "Lat Pulldown", "back", "cable", "Cable lat pulldown"),
    ("chest_fly", "Chest Fly", "chest", "dumbbell", "Dumbbell chest fly"),
]


def default_exercises() -> List[Exercise]:
    """Return the built-in exercise catalog."""
    return [
        Exercise(
            id=exercise_id,
            name=name,
            muscle_group=muscle_group,
            equipment=equipment,
            description=description,
            is_custom=False,
            default_weight_unit=WeightUnit.LB,
            created_at=CATALOG_TIMESTAMP,
            updated_at=CATALOG_TIMESTAMP,
        )
        for exercise_id, name, muscle_group, equipment, description in _CATALOG
    ]
