"""Tests for form template lookup and submission validation."""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from feedback_desk.models import FormTemplate
from feedback_desk.services.errors import NotFoundError, ValidationError
from feedback_desk.services.forms import FormService, validate_form_data

FIELDS = [
    {"name": "course", "label": "Course", "type": "text", "required": True, "order": 1},
    {"name": "email", "label": "Contact", "type": "email", "order": 2},
    {"name": "rating", "label": "Rating", "type": "number", "validation": {"min": 1, "max": 5}},
    {"name": "category", "label": "Category", "type": "select", "options": ["content", "technical"]},
    {"name": "seen_on", "label": "Seen on", "type": "date"},
    {"name": "code", "label": "Code", "type": "text", "validation": {"pattern": r"[A-Z]{3}\d{3}"}},
    {"name": "screenshot", "label": "Screenshot", "type": "file"},
]


class TestValidateFormData:
    def test_valid_submission_is_cleaned(self):
        cleaned = validate_form_data(
            FIELDS,
            {
                "course": "Algorithms",
                "email": "student@school.edu",
                "rating": 4,
                "category": "content",
                "seen_on": "2026-02-28",
                "code": "CSE101",
                "screenshot": "https://files.school.edu/abc.png",
                "injected": "not a template field",
            },
        )

        assert cleaned["course"] == "Algorithms"
        assert cleaned["rating"] == 4
        assert "injected" not in cleaned

    def test_missing_required_field(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_form_data(FIELDS, {"course": "   "})

        assert exc_info.value.fields == {"course": "Course is required"}

    def test_optional_blank_fields_are_dropped(self):
        cleaned = validate_form_data(FIELDS, {"course": "Algorithms", "email": ""})
        assert cleaned == {"course": "Algorithms"}

    def test_collects_every_field_error(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_form_data(
                FIELDS,
                {
                    "course": "Algorithms",
                    "email": "not-an-email",
                    "rating": 9,
                    "category": "billing",
                    "seen_on": "yesterday",
                    "code": "cse101",
                },
            )

        assert set(exc_info.value.fields) == {"email", "rating", "category", "seen_on", "code"}
        assert "at most 5" in exc_info.value.fields["rating"]

    def test_number_must_be_numeric(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_form_data(FIELDS, {"course": "Algorithms", "rating": "great"})
        assert exc_info.value.fields["rating"] == "Rating must be a number"

    @pytest.mark.parametrize("value", ["a@b..c", "a@.b.c", "a..b@c.d", "no-at-sign", 42])
    def test_malformed_email(self, value):
        fields = [{"name": "contact", "label": "Contact", "type": "email", "required": True}]

        with pytest.raises(ValidationError) as exc_info:
            validate_form_data(fields, {"contact": value})

        assert exc_info.value.fields == {"contact": "Contact must be a valid email address"}

    def test_valid_email_is_kept(self):
        fields = [{"name": "contact", "label": "Contact", "type": "email"}]
        assert validate_form_data(fields, {"contact": "ana.lee@school.edu"}) == {
            "contact": "ana.lee@school.edu"
        }

    @pytest.mark.parametrize("value", ["2026-02-30", "28/02/2026", "yesterday"])
    def test_malformed_date(self, value):
        fields = [{"name": "seen_on", "label": "Seen on", "type": "date"}]

        with pytest.raises(ValidationError) as exc_info:
            validate_form_data(fields, {"seen_on": value})

        assert exc_info.value.fields["seen_on"] == "Seen on must be an ISO date"

    def test_text_length_limits(self):
        fields = [{"name": "why", "label": "Why", "validation": {"min": 5, "max": 10}}]
        with pytest.raises(ValidationError):
            validate_form_data(fields, {"why": "abc"})
        with pytest.raises(ValidationError):
            validate_form_data(fields, {"why": "a" * 11})
        assert validate_form_data(fields, {"why": "just right"}) == {"why": "just right"}


class TestFormService:
    async def test_returns_latest_active_version(self, session: AsyncSession):
        session.add_all([
            FormTemplate(program_type="design", name="v1", fields=[], version=1),
            FormTemplate(program_type="design", name="v2", fields=[], version=2),
            FormTemplate(program_type="design", name="v3", fields=[], version=3, is_active=False),
        ])
        await session.flush()

        template = await FormService(session).get_active_template("design")

        assert template.name == "v2"

    async def test_unknown_program(self, session: AsyncSession):
        with pytest.raises(NotFoundError):
            await FormService(session).get_active_template("astronomy")
