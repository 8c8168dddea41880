"""
Validation of an assignee's form response against the task's form.

``validate_response`` returns the ids of every offending field so the
caller can report them together instead of one at a time.
"""
import re
from datetime import date, datetime
from typing import Any, Dict, List

from .enums import FieldType
from .errors import ValidationError
from .schemas import EMAIL_RE, FormField, TaskForm

TEXT_TYPES = {FieldType.text, FieldType.textarea}


def is_blank(value: Any) -> bool:
    if isinstance(value, str):
        return not value.strip()
    return value is None or value == [] or value == {}


def _number(value: Any):
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _is_iso_date(value: Any) -> bool:
    if isinstance(value, (date, datetime)):
        return True
    if not isinstance(value, str):
        return False
    for parse in (date.fromisoformat, datetime.fromisoformat):
        try:
            parse(value.replace("Z", "+00:00"))
            return True
        except ValueError:
            continue
    return False


def field_is_valid(field: FormField, value: Any) -> bool:
    """Check a non-blank value against the field's type and rules"""
    rules = field.validation

    if field.type == FieldType.number:
        number = _number(value)
        if number is None:
            return False
        if rules and rules.min is not None and number < rules.min:
            return False
        if rules and rules.max is not None and number > rules.max:
            return False
        return True

    if field.type == FieldType.email:
        return isinstance(value, str) and bool(EMAIL_RE.match(value.strip()))

    if field.type == FieldType.date:
        return _is_iso_date(value)

    if field.type in (FieldType.select, FieldType.radio):
        return isinstance(value, str) and value in (field.options or [])

    if field.type == FieldType.checkbox:
        values = value if isinstance(value, list) else [value]
        return all(isinstance(v, str) and v in (field.options or []) for v in values)

    if field.type in TEXT_TYPES:
        if not isinstance(value, str):
            return False
        if rules and rules.min is not None and len(value) < rules.min:
            return False
        if rules and rules.max is not None and len(value) > rules.max:
            return False
        if rules and rules.pattern and not re.fullmatch(rules.pattern, value):
            return False
        return True

    # file fields hold an uploaded file id or descriptor
    return isinstance(value, (str, dict))


def validate_response(form: TaskForm, response: Dict[str, Any]) -> List[str]:
    known = {field.id for field in form.fields}
    offending = [field_id for field_id in response if field_id not in known]

    for field in form.fields:
        value = response.get(field.id)
        if is_blank(value):
            if field.required:
                offending.append(field.id)
            continue
        if not field_is_valid(field, value):
            offending.append(field.id)

    return offending


def check_response(form: TaskForm, response: Dict[str, Any]) -> None:
    """Raise ValidationError listing every offending field"""
    offending = validate_response(form, response)
    if offending:
        missing = [f.id for f in form.fields if f.required and is_blank(response.get(f.id))]
        if missing and len(missing) == len(offending):
            message = f"Required fields missing: {', '.join(missing)}"
        else:
            message = f"Invalid form response for fields: {', '.join(offending)}"
        raise ValidationError(message, fields=offending)
