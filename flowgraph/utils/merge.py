"""Typed partial updates for pydantic models.

Partials are plain dicts keyed by either the python field name or its wire
alias. Nested models and dict-valued maps merge key by key; every other value
(scalars, lists, None) replaces the existing one wholesale.
"""

from typing import Any, TypeVar

from pydantic import BaseModel

M = TypeVar("M", bound=BaseModel)


def _field_name(model_cls: type[BaseModel], key: str) -> str:
    """Resolve a wire alias to the python field name."""
    if key in model_cls.model_fields:
        return key
    for name, info in model_cls.model_fields.items():
        if info.alias == key:
            return name
    return key


def merge_value(current: Any, value: Any) -> Any:
    """Deep-merge ``value`` into ``current`` and return the result.

    ``current`` is never modified. A model comes back as a freshly validated
    model of the same class.
    """
    if isinstance(current, BaseModel) and isinstance(value, dict):
        return merge_model(current, value)
    if isinstance(current, dict) and isinstance(value, dict):
        merged = dict(current)
        for key, sub_value in value.items():
            merged[key] = merge_value(current.get(key), sub_value)
        return merged
    return value


def merge_model(model: M, partial: dict[str, Any]) -> M:
    """Recursive merge of a partial dict into a model."""
    updates = {}
    for key, sub_value in partial.items():
        name = _field_name(type(model), key)
        updates[name] = merge_value(getattr(model, name, None), sub_value)
    return _revalidate(model, updates)


def shallow_update(model: M, partial: dict[str, Any]) -> M:
    """Replace top-level fields of a model, no recursion."""
    updates = {_field_name(type(model), key): value for key, value in partial.items()}
    return _revalidate(model, updates)


def _revalidate(model: M, updates: dict[str, Any]) -> M:
    data = {name: getattr(model, name) for name in type(model).model_fields}
    if model.model_extra:
        data.update(model.model_extra)
    data.update(updates)
    return type(model).model_validate(data)
