"""Body measurement schema (inches) used by tailoring orders.

The set is closed: unknown keys are rejected, never stored. A draft may hold
a partial set; `validate_measurements` decides whether it is complete.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError

NOTES_MAX_LENGTH = 500


@dataclass(frozen=True)
class MeasurementField:
    name: str
    label: str
    min: float
    max: float
    section: str  # "upper" | "arms" | "lower" | "lengths"
    required: bool = True
    female_only: bool = False
    tooltip: str = ""


MEASUREMENT_FIELDS: List[MeasurementField] = [
    # Upper body
    MeasurementField("shoulder_width", "Shoulder width", 10, 30, "upper",
                     tooltip="Measure across back from shoulder to shoulder"),
    MeasurementField("chest_bust", "Chest/Bust", 24, 60, "upper",
                     tooltip="Measure around the fullest part of your chest/bust"),
    MeasurementField("under_bust", "Under-bust", 20, 55, "upper",
                     tooltip="Measure directly under the bust"),
    MeasurementField("waist", "Waist", 20, 60, "upper",
                     tooltip="Measure around your natural waistline"),
    MeasurementField("neck_circumference", "Neck circumference", 10, 24, "upper",
                     tooltip="Measure around the base of your neck"),
    # Arms
    MeasurementField("arm_length", "Arm length", 18, 36, "arms",
                     tooltip="Measure from shoulder to wrist with arm slightly bent"),
    MeasurementField("arm_width", "Arm width", 8, 24, "arms",
                     tooltip="Measure around the fullest part of your bicep"),
    # Lower body
    MeasurementField("hip", "Hip", 24, 70, "lower",
                     tooltip="Measure around the fullest part of your hips"),
    MeasurementField("thigh", "Thigh", 14, 40, "lower",
                     tooltip="Measure around the fullest part of your thigh"),
    MeasurementField("knee", "Knee", 10, 30, "lower",
                     tooltip="Measure around your knee at the center"),
    MeasurementField("inside_leg", "Inside leg", 20, 45, "lower",
                     tooltip="Measure from crotch to ankle on the inside of leg"),
    # Lengths
    MeasurementField("full_length_top", "Full length (top)", 20, 60, "lengths",
                     tooltip="Measure from shoulder to desired hemline for tops"),
    MeasurementField("full_length_bottom", "Full length (bottom)", 20, 50, "lengths",
                     tooltip="Measure from waist to desired hemline for bottoms"),
    MeasurementField("shoulder_to_nipple", "Shoulder to nipple", 5, 20, "lengths",
                     required=False, female_only=True,
                     tooltip="Measure from shoulder tip to nipple"),
    MeasurementField("shoulder_to_waist", "Shoulder to waist", 10, 30, "lengths",
                     tooltip="Measure from shoulder to natural waist"),
    MeasurementField("waist_to_hip", "Waist to hip", 5, 20, "lengths",
                     tooltip="Measure from natural waist to hip line"),
]

FIELDS_BY_NAME: Dict[str, MeasurementField] = {f.name: f for f in MEASUREMENT_FIELDS}

SECTION_TITLES = {
    "upper": "Upper Body Measurements",
    "arms": "Arm Measurements",
    "lower": "Lower Body Measurements",
    "lengths": "Length Measurements",
}


class MeasurementSet(BaseModel):
    """A (possibly partial) measurement document. All lengths in inches."""
    model_config = ConfigDict(extra="forbid")

    shoulder_width: Optional[float] = None
    chest_bust: Optional[float] = None
    under_bust: Optional[float] = None
    waist: Optional[float] = None
    neck_circumference: Optional[float] = None
    arm_length: Optional[float] = None
    arm_width: Optional[float] = None
    hip: Optional[float] = None
    thigh: Optional[float] = None
    knee: Optional[float] = None
    inside_leg: Optional[float] = None
    full_length_top: Optional[float] = None
    full_length_bottom: Optional[float] = None
    shoulder_to_nipple: Optional[float] = None
    shoulder_to_waist: Optional[float] = None
    waist_to_hip: Optional[float] = None

    unit: Literal["inches"] = "inches"
    gender: Optional[Literal["male", "female"]] = None
    notes: Optional[str] = None

    def to_document(self) -> Dict[str, Any]:
        """JSON document stored on the order, without unset fields."""
        return self.model_dump(exclude_none=True)


class MeasurementCheck(BaseModel):
    valid: bool
    errors: Dict[str, str] = {}
    measurements: Optional[MeasurementSet] = None

    @property
    def first_error(self) -> Optional[str]:
        return next(iter(self.errors.values()), None)


def range_message(field: MeasurementField) -> str:
    return f"{field.label} must be between {field.min:g} and {field.max:g} inches"


def is_required(field: MeasurementField, gender: Optional[str]) -> bool:
    return field.required or (field.female_only and gender == "female")


def _parse(data: Dict[str, Any]) -> MeasurementCheck:
    try:
        return MeasurementCheck(valid=True, measurements=MeasurementSet.model_validate(data))
    except PydanticValidationError as e:
        errors = {}
        for err in e.errors():
            key = str(err["loc"][0]) if err["loc"] else "measurements"
            field = FIELDS_BY_NAME.get(key)
            if err["type"] == "extra_forbidden":
                errors[key] = f"Unknown measurement '{key}'"
            elif field is not None:
                errors[key] = range_message(field)
            else:
                errors[key] = f"Invalid value for {key}"
        return MeasurementCheck(valid=False, errors=errors)


def validate_measurements(data: Dict[str, Any]) -> MeasurementCheck:
    """Full check for form submission: schema, ranges and required fields.

    Every problem is reported, keyed by field name.
    """
    parsed = _parse(data)
    if not parsed.valid:
        return parsed
    measurements = parsed.measurements

    errors: Dict[str, str] = {}
    for field in MEASUREMENT_FIELDS:
        value = getattr(measurements, field.name)
        if value is None:
            if is_required(field, measurements.gender):
                errors[field.name] = f"{field.label} is required"
            continue
        if value <= 0 or not field.min <= value <= field.max:
            errors[field.name] = range_message(field)

    if measurements.notes and len(measurements.notes) > NOTES_MAX_LENGTH:
        errors["notes"] = f"Notes cannot exceed {NOTES_MAX_LENGTH} characters"

    if errors:
        return MeasurementCheck(valid=False, errors=errors)
    return MeasurementCheck(valid=True, measurements=measurements)


def parse_partial_measurements(data: Dict[str, Any]) -> MeasurementCheck:
    """Looser check for autosaved drafts: known keys and numeric types only."""
    return _parse(data)


def are_measurements_complete(measurements: Dict[str, Any]) -> bool:
    gender = measurements.get("gender")
    for field in MEASUREMENT_FIELDS:
        if not is_required(field, gender):
            continue
        value = measurements.get(field.name)
        if not isinstance(value, (int, float)) or isinstance(value, bool) or value <= 0:
            return False
    return True


def format_measurements(measurements: MeasurementSet) -> List[str]:
    """Short summary lines for order cards."""
    lines = []
    for name in ("shoulder_width", "chest_bust", "waist", "hip", "arm_length"):
        value = getattr(measurements, name)
        if value is not None:
            lines.append(f'{FIELDS_BY_NAME[name].label}: {value:g}"')
    return lines


def section_title(section: str) -> str:
    return SECTION_TITLES[section]
