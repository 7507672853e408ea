"""
Input Validation
================

Converts pydantic validation failures into ValidationException so that
callers only ever handle the core exception taxonomy.
"""

from typing import Any, List, Mapping, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from caseflow.core.exceptions import ValidationException

M = TypeVar("M", bound=BaseModel)


def format_errors(exc: PydanticValidationError) -> List[str]:
    """One human-readable line per invalid field."""
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()))
        messages.append(f"{location}: {error['msg']}" if location else error["msg"])
    return messages


def parse_model(model: Type[M], data: Any) -> M:
    """
    Build ``model`` from ``data`` (a mapping or an existing instance).

    Raises:
        ValidationException: With one message per invalid field
    """
    if isinstance(data, model):
        return data
    try:
        if isinstance(data, Mapping):
            return model.model_validate(dict(data))
        return model.model_validate(data)
    except PydanticValidationError as e:
        errors = format_errors(e)
        raise ValidationException(f"Invalid {model.__name__}", errors=errors) from e
