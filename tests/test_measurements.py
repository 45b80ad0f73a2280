"""Tests for the closed measurement schema."""

from tailorhub.orders.measurements import (
    MEASUREMENT_FIELDS,
    MeasurementSet,
    are_measurements_complete,
    format_measurements,
    parse_partial_measurements,
    section_title,
    validate_measurements,
)


def test_field_catalogue():
    assert len(MEASUREMENT_FIELDS) == 16
    optional = [f.name for f in MEASUREMENT_FIELDS if not f.required]
    assert optional == ["shoulder_to_nipple"]


def test_valid_set(valid_measurements):
    check = validate_measurements(valid_measurements)
    assert check.valid
    assert check.errors == {}
    assert check.measurements.waist == 32
    assert check.measurements.unit == "inches"


def test_waist_below_range(valid_measurements):
    check = validate_measurements({**valid_measurements, "waist": 15})
    assert not check.valid
    assert check.errors == {"waist": "Waist must be between 20 and 60 inches"}
    assert check.first_error == "Waist must be between 20 and 60 inches"


def test_every_problem_reported(valid_measurements):
    data = {**valid_measurements, "waist": 70, "knee": 5}
    del data["hip"]
    check = validate_measurements(data)
    assert set(check.errors) == {"waist", "knee", "hip"}
    assert check.errors["hip"] == "Hip is required"


def test_unknown_key_rejected(valid_measurements):
    check = validate_measurements({**valid_measurements, "colour": "red"})
    assert not check.valid
    assert check.errors == {"colour": "Unknown measurement 'colour'"}


def test_female_requires_shoulder_to_nipple(valid_measurements):
    check = validate_measurements({**valid_measurements, "gender": "female"})
    assert check.errors == {"shoulder_to_nipple": "Shoulder to nipple is required"}

    assert validate_measurements({**valid_measurements, "gender": "male"}).valid
    assert validate_measurements(
        {**valid_measurements, "gender": "female", "shoulder_to_nipple": 10}
    ).valid


def test_notes_length(valid_measurements):
    check = validate_measurements({**valid_measurements, "notes": "x" * 501})
    assert check.errors == {"notes": "Notes cannot exceed 500 characters"}


def test_partial_draft_accepted():
    check = parse_partial_measurements({"waist": 15, "hip": 40})
    assert check.valid
    assert check.measurements.to_document() == {"waist": 15.0, "hip": 40.0, "unit": "inches"}


def test_partial_draft_rejects_garbage():
    assert not parse_partial_measurements({"waist": "wide"}).valid
    assert not parse_partial_measurements({"sleeve": 20}).valid


def test_completeness(valid_measurements):
    assert are_measurements_complete(valid_measurements)
    assert not are_measurements_complete({**valid_measurements, "waist": 0})
    assert not are_measurements_complete({"waist": 32})
    assert not are_measurements_complete({**valid_measurements, "gender": "female"})


def test_format_measurements(valid_measurements):
    lines = format_measurements(MeasurementSet(**valid_measurements))
    assert lines[0] == 'Shoulder width: 17"'
    assert 'Waist: 32"' in lines
    assert len(lines) == 5


def test_section_titles():
    assert section_title("upper") == "Upper Body Measurements"
    assert {f.section for f in MEASUREMENT_FIELDS} == {"upper", "arms", "lower", "lengths"}
