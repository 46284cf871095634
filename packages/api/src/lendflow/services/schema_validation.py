# This project was developed with assistance from AI tools.
"""JSON Schema checks for loan-type metadata.

Loan types carry a JSON Schema document. ``check_schema`` rejects a
structurally invalid schema when an admin writes a loan type, and
``validate_instance`` checks application metadata against it at apply time.
Format keywords (``email``, ``date``) are asserted, not just annotated.
"""

from typing import Any

from jsonschema import Draft202012Validator
from jsonschema.exceptions import ValidationError
from jsonschema.protocols import Validator
from jsonschema.validators import validator_for

from ..core.errors import ValidationFailedError

FieldError = dict[str, str]


def _field_path(error: ValidationError) -> str:
    path = "/".join(str(part) for part in error.absolute_path)
    return path or "(root)"


def _path_key(error: ValidationError) -> list[str]:
    return [str(part) for part in error.absolute_path]


def _validator_class(schema: dict[str, Any]) -> type[Validator]:
    return validator_for(schema, default=Draft202012Validator)


def check_schema(schema: Any) -> list[FieldError]:
    """Return every structural problem with ``schema``; empty when it is valid."""
    if not isinstance(schema, dict):
        return [{"field": "schema", "message": "Schema must be a JSON object"}]

    cls = _validator_class(schema)
    meta_validator = cls(cls.META_SCHEMA)
    return [
        {"field": f"schema/{_field_path(err)}", "message": err.message}
        for err in sorted(meta_validator.iter_errors(schema), key=_path_key)
    ]


def compile_schema(schema: dict[str, Any]) -> Validator:
    """Build a validator for ``schema``, raising ValidationFailedError if it is malformed."""
    problems = check_schema(schema)
    if problems:
        raise ValidationFailedError("Loan type schema is invalid", problems)
    cls = _validator_class(schema)
    return cls(schema, format_checker=cls.FORMAT_CHECKER)


def validate_instance(schema: dict[str, Any] | None, instance: Any) -> list[FieldError]:
    """Validate ``instance`` against ``schema``. An absent or empty schema accepts anything."""
    if not schema:
        return []
    validator = compile_schema(schema)
    errors = sorted(validator.iter_errors(instance), key=_path_key)
    return [{"field": _field_path(err), "message": err.message} for err in errors]
