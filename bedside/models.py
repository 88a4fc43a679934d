"""
Request and response models for the Bedside Board API.

Every input constraint of the service lives here: the storage and day layers
assume the values they receive have already passed through these models.
JSON payloads use camelCase keys (``minValue``, ``metricValues``...), the
Python attributes stay snake_case.
"""
import re
from datetime import date as date_type
from typing import Annotated, Dict, List, Literal, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, StringConstraints, model_validator
from pydantic.alias_generators import to_camel

DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
TIME_RE = r"^\d{2}:\d{2}$"

MAX_DAYS_LIMIT = 365
DEFAULT_DAYS_LIMIT = 30


def check_date(value: str) -> str:
    """Accept only real calendar dates written as YYYY-MM-DD."""
    if not isinstance(value, str) or not DATE_RE.match(value):
        raise ValueError("Date must be in YYYY-MM-DD format")
    date_type.fromisoformat(value)
    return value


DateStr = Annotated[str, AfterValidator(check_date)]
TimeStr = Annotated[str, StringConstraints(pattern=TIME_RE)]
EntityId = Annotated[str, StringConstraints(min_length=1, max_length=50)]
Icon = Annotated[str, StringConstraints(max_length=10)]
Score = Annotated[float, Field(ge=0, le=100)]
Bound = Annotated[int, Field(ge=0, le=100)]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- Settings ---

class MetricInput(CamelModel):
    name: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=100)]
    icon: Icon = "📊"
    min_value: Bound = 0
    max_value: Annotated[int, Field(ge=1, le=100)] = 10
    default_value: Bound = 5
    sort_order: Annotated[int, Field(ge=0)] = 0

    @model_validator(mode="after")
    def check_bounds(self):
        if self.min_value >= self.max_value:
            raise ValueError("minValue must be lower than maxValue")
        if not self.min_value <= self.default_value <= self.max_value:
            raise ValueError("defaultValue must lie between minValue and maxValue")
        return self


class Metric(MetricInput):
    id: EntityId


class EventTypeInput(CamelModel):
    name: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=100)]
    icon: Icon = "📌"
    sort_order: Annotated[int, Field(ge=0)] = 0


class EventType(EventTypeInput):
    id: EntityId


class Settings(CamelModel):
    metrics: List[Metric]
    event_types: List[EventType]
    admission_date: Optional[str] = None


# --- Day data ---

class EventEntry(CamelModel):
    id: EntityId
    time: TimeStr
    type: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=100)]
    note: Optional[Annotated[str, StringConstraints(max_length=500)]] = None


class Question(CamelModel):
    id: EntityId
    text: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=1000)]
    answered: bool = False


class QuestionAnswered(CamelModel):
    answered: bool


class DayPatch(CamelModel):
    """
    Partial update of a day. Only the fields actually sent count as present;
    an explicit null for mood or admissionDate clears the stored value.
    """
    mood: Optional[Annotated[int, Field(ge=0, le=4)]] = None
    metric_values: Optional[Dict[str, Score]] = None
    notes: Optional[Annotated[str, StringConstraints(max_length=10000)]] = None
    admission_date: Optional[DateStr] = None

    def present(self) -> Dict[str, object]:
        """The fields set by the caller, keyed by attribute name."""
        return {name: getattr(self, name) for name in self.model_fields_set}


class DayAggregate(CamelModel):
    date: str
    mood: Optional[int] = None
    metric_values: Dict[str, float] = Field(default_factory=dict)
    notes: str = ""
    events: List[EventEntry] = Field(default_factory=list)
    questions: List[Question] = Field(default_factory=list)


class DaySummary(CamelModel):
    date: str
    summary: str


# --- Care records ---

VitalsType = Literal[
    "blood_pressure",
    "heart_rate",
    "temperature",
    "oxygen_saturation",
    "respiratory_rate",
    "blood_glucose",
]


class VitalsReading(CamelModel):
    id: EntityId
    time: TimeStr
    type: VitalsType
    value: Annotated[str, StringConstraints(min_length=1, max_length=50)]
    unit: Annotated[str, StringConstraints(max_length=20)]
    note: Optional[Annotated[str, StringConstraints(max_length=500)]] = None


class MedicationInput(CamelModel):
    name: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=200)]
    dosage: Annotated[str, StringConstraints(max_length=100)] = ""
    frequency: Annotated[str, StringConstraints(max_length=100)] = ""
    icon: Icon = "💊"
    notes: Optional[Annotated[str, StringConstraints(max_length=1000)]] = None
    active: bool = True


class Medication(MedicationInput):
    id: EntityId


class MedicationDose(CamelModel):
    id: EntityId
    medication_id: EntityId
    time: TimeStr
    taken: bool = True
    skipped_reason: Optional[Annotated[str, StringConstraints(max_length=500)]] = None


class CareTeamMemberInput(CamelModel):
    name: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=200)]
    role: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=100)]
    icon: Icon = "👩‍⚕️"
    notes: Optional[Annotated[str, StringConstraints(max_length=500)]] = None
    sort_order: Optional[Annotated[int, Field(ge=0)]] = None


class CareTeamMember(CamelModel):
    id: EntityId
    name: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=200)]
    role: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=100)]
    icon: Icon = "👩‍⚕️"
    notes: Optional[Annotated[str, StringConstraints(max_length=500)]] = None
    sort_order: Annotated[int, Field(ge=0)] = 0
