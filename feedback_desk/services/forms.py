"""Form templates: lookup of the active template and submission validation."""

import logging
import re
from datetime import date
from typing import Any

from pydantic import EmailStr, TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import FormTemplate
from .errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

EMAIL_ADAPTER = TypeAdapter(EmailStr)
DATE_ADAPTER = TypeAdapter(date)


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, dict)):
        return len(value) == 0
    return False


def _check_field(field: dict, value: Any) -> str | None:
    """Return an error message for one populated field, or None."""
    field_type = field.get("type", "text")
    rules = field.get("validation") or {}

    if field_type == "number":
        try:
            number = float(value)
        except (TypeError, ValueError):
            return "must be a number"
        if rules.get("min") is not None and number < rules["min"]:
            return f"must be at least {rules['min']}"
        if rules.get("max") is not None and number > rules["max"]:
            return f"must be at most {rules['max']}"
        return None

    if field_type == "email":
        try:
            EMAIL_ADAPTER.validate_python(value)
        except PydanticValidationError:
            return "must be a valid email address"
        return None

    if field_type == "select":
        options = field.get("options") or []
        if options and value not in options:
            return f"must be one of: {', '.join(options)}"
        return None

    if field_type == "date":
        try:
            DATE_ADAPTER.validate_python(value)
        except PydanticValidationError:
            return "must be an ISO date"
        return None

    if field_type == "file":
        # Upload storage is external; we only see the stored URL(s)
        if not isinstance(value, (str, list)):
            return "must be an uploaded file URL"
        return None

    # text / textarea
    text = str(value)
    if rules.get("min") is not None and len(text) < rules["min"]:
        return f"must be at least {rules['min']} characters"
    if rules.get("max") is not None and len(text) > rules["max"]:
        return f"must be at most {rules['max']} characters"
    if rules.get("pattern") and not re.fullmatch(rules["pattern"], text):
        return "has an invalid format"
    return None


def validate_form_data(fields: list[dict], form_data: dict[str, Any]) -> dict[str, Any]:
    """
    Validate submitted values against a template's field definitions.

    Returns the form data restricted to the template's fields, so a caller
    cannot smuggle extra keys onto the ticket.

    Raises:
        ValidationError: with one message per offending field
    """
    errors: dict[str, str] = {}
    cleaned: dict[str, Any] = {}

    for field in sorted(fields, key=lambda f: f.get("order", 0)):
        name = field["name"]
        value = form_data.get(name)

        if _is_blank(value):
            if field.get("required"):
                errors[name] = f"{field.get('label', name)} is required"
            continue

        message = _check_field(field, value)
        if message:
            errors[name] = f"{field.get('label', name)} {message}"
        else:
            cleaned[name] = value

    if errors:
        raise ValidationError(
            f"Form validation failed for {len(errors)} field(s)",
            fields=errors,
        )
    return cleaned


class FormService:
    """Read access to form templates."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_active_template(self, program: str) -> FormTemplate:
        """Latest active template for a program, or NotFoundError."""
        result = await self._session.execute(
            select(FormTemplate)
            .where(
                FormTemplate.program_type == program,
                FormTemplate.is_active.is_(True),
            )
            .order_by(FormTemplate.version.desc())
            .limit(1)
        )
        template = result.scalar_one_or_none()
        if not template:
            raise NotFoundError(f"No active form template for program '{program}'")
        return template
