from datetime import date, datetime

import pytest

from conftest import TODAY, academic_files, academic_values, pdf, personal_values, png
from forms import (
    PROFILE_PICTURE_SLOT,
    TRANSCRIPT_SLOT,
    UploadedFile,
    academic_rules,
    age_on,
    as_date,
    first_error_step,
    normalize_personal_values,
    personal_rules,
    validate,
)


def personal_errors(files: dict | None = None, **overrides) -> dict:
    values = personal_values(**overrides)
    return validate(personal_rules(values), values, files or {}, TODAY)


def academic_errors(values: dict | None = None, files: dict | None = None) -> dict:
    values = values or academic_values()
    return validate(academic_rules(values), values, files if files is not None else academic_files(), TODAY)


def test_valid_personal_form_has_no_errors() -> None:
    assert personal_errors() == {}


@pytest.mark.parametrize(
    ("birth", "ok"),
    [
        (date(2010, 6, 15), True),  # 16 today
        (date(2010, 6, 16), False),  # 16 tomorrow
        (date(1926, 6, 15), True),  # 100 today
        (date(1925, 6, 14), False),  # 101
    ],
)
def test_age_bounds_are_inclusive(birth: date, ok: bool) -> None:
    errors = personal_errors(date_of_birth=birth)

    if ok:
        assert "date_of_birth" not in errors
    else:
        assert errors["date_of_birth"] == "Age must be between 16 and 100 years"


def test_date_of_birth_edge_messages() -> None:
    assert personal_errors(date_of_birth=None)["date_of_birth"] == "Date of birth is required"
    assert personal_errors(date_of_birth=date(2027, 1, 1))["date_of_birth"] == "Date of birth cannot be in the future"
    assert personal_errors(date_of_birth=date(1899, 12, 31))["date_of_birth"] == "Date of birth cannot be before 1900-01-01"
    assert personal_errors(date_of_birth="2000-01-01") == {}


def test_turkish_second_nationality_requires_registry_document() -> None:
    errors = personal_errors(has_dual_nationality=True, second_nationality="TR")

    assert errors == {"nufus": "Nüfus Kayıt Örneği document is required for Turkish nationality"}
    assert personal_errors({"nufus": pdf("nufus.pdf")}, has_dual_nationality=True, second_nationality="tr") == {}


def test_registry_document_not_required_without_dual_flag() -> None:
    assert personal_errors(nationality="TR") == {}
    assert personal_errors(has_dual_nationality=False, second_nationality="TR") == {}


def test_second_nationality_rules() -> None:
    assert "second_nationality" in personal_errors(has_dual_nationality=True)
    assert personal_errors(has_dual_nationality=True, second_nationality="US")["second_nationality"] == (
        "Second nationality must differ from your nationality"
    )
    assert personal_errors(has_dual_nationality=True, second_nationality="DE") == {}


def test_unknown_nationality_is_rejected() -> None:
    assert personal_errors(nationality="XX")["nationality"] == "Select a nationality from the list"


def test_upload_constraints_on_personal_files() -> None:
    big_picture = png("me.png", size=PROFILE_PICTURE_SLOT.max_bytes + 1)
    errors = personal_errors({"profile": big_picture})
    assert "profile" in errors

    wrong_type = UploadedFile("nufus.docx", b"doc", None)
    errors = personal_errors({"nufus": wrong_type}, has_dual_nationality=True, second_nationality="TR")
    assert "nufus" in errors


def test_contact_fields_are_checked() -> None:
    errors = personal_errors(email="not-an-email", country_code="90", phone_number="")

    assert errors["email"] == "Invalid email address"
    assert errors["country_code"] == "Country code must look like +90"
    assert errors["phone_number"] == "Phone number is required"
    assert personal_errors(phone_number="abc")["phone_number"].startswith("Phone number may only contain")


def test_first_error_step_points_at_earliest_step() -> None:
    values = personal_values(passport_number="", city="")
    rules = personal_rules(values)
    errors = validate(rules, values, {}, TODAY)

    assert set(errors) == {"passport_number", "city"}
    assert first_error_step(rules, errors) == 2
    assert first_error_step(rules, {}) is None


def test_normalize_drops_second_nationality_when_not_dual() -> None:
    values = normalize_personal_values(personal_values(nationality="us", second_nationality="TR", country="gb"))

    assert values["second_nationality"] is None
    assert values["nationality"] == "US"
    assert values["country"] == "GB"
    assert values["has_dual_nationality"] is False


def test_valid_academic_form_has_no_errors() -> None:
    assert academic_errors() == {}


def test_academic_required_documents() -> None:
    errors = academic_errors(files={"additional": []})

    assert errors == {
        "passport_photo": "Passport Photo is required",
        "transcript": "Academic Transcript is required",
        "diploma": "Diploma/Certificate is required",
    }


def test_additional_documents_are_each_checked() -> None:
    files = academic_files(additional=[pdf("ok.pdf"), UploadedFile("virus.exe", b"MZ", None)])

    assert "additional" in academic_errors(files=files)


def test_graduation_fields() -> None:
    errors = academic_errors(academic_values(graduated_school_name=" ", graduation_date=date(1949, 12, 31), graduation_grade=""))

    assert errors["graduated_school_name"] == "School name is required"
    assert errors["graduation_date"] == "Graduation date cannot be before 1950-01-01"
    assert errors["graduation_grade"] == "Graduation grade is required"


def test_exam_rules_are_indexed() -> None:
    exams = [
        {"exam_type": "IELTS", "custom_name": "", "score": "7.5", "exam_date": date(2024, 3, 1), "document": pdf("ielts.pdf")},
        {"exam_type": "Other", "custom_name": "", "score": "", "exam_date": date(2030, 1, 1), "document": None},
        {"exam_type": "TOEFL", "custom_name": "", "score": "100", "exam_date": date(1999, 12, 31), "document": None},
    ]

    errors = academic_errors(academic_values(exams=exams))

    assert errors == {
        "exams.1.exam_type": "Exam name is required",
        "exams.1.score": "Score is required",
        "exams.1.exam_date": "Exam date cannot be in the future",
        "exams.2.exam_date": "Exam date cannot be before 2000-01-01",
    }
    assert first_error_step(academic_rules(academic_values(exams=exams)), errors) == 2


def test_upload_slot_check() -> None:
    assert TRANSCRIPT_SLOT.check(pdf("SCAN.PDF")) is None
    assert TRANSCRIPT_SLOT.check(UploadedFile("scan.pdf", b"", None)) == "Academic Transcript is empty"
    assert TRANSCRIPT_SLOT.check(UploadedFile("scan.txt", b"x", None)).startswith("Academic Transcript must be one of")


def test_as_date_and_age_on() -> None:
    assert as_date("2001-02-03") == date(2001, 2, 3)
    assert as_date(datetime(2001, 2, 3, 10, 0)) == date(2001, 2, 3)
    assert as_date("03/02/2001") is None
    assert as_date("") is None
    assert age_on(date(2008, 2, 29), date(2024, 2, 28)) == 15
    assert age_on(date(2008, 2, 29), date(2024, 2, 29)) == 16


def test_text_fields_respect_column_lengths() -> None:
    errors = personal_errors(passport_number="P" * 41, city="C" * 121, postal_code="9" * 21)

    assert errors == {
        "passport_number": "Passport number must be at most 40 characters",
        "city": "City must be at most 120 characters",
        "postal_code": "Postal code must be at most 20 characters",
    }
    assert personal_errors(passport_number="P" * 40, street="S" * 255) == {}


def test_academic_text_lengths() -> None:
    exams = [{"exam_type": "Other", "custom_name": "N" * 81, "score": "9" * 41, "exam_date": date(2024, 3, 1), "document": None}]

    errors = academic_errors(academic_values(graduation_grade="A" * 61, exams=exams))

    assert errors == {
        "graduation_grade": "Graduation grade must be at most 60 characters",
        "exams.0.exam_type": "Exam name must be at most 80 characters",
        "exams.0.score": "Score must be at most 40 characters",
    }
