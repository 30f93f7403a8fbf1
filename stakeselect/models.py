from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Union

Identifier = Union[str, int]


@dataclass(frozen=True)
class StakeholderRef:
    """A stakeholder as this control knows it: an id and a display name.

    Two refs are the same stakeholder iff their ids are equal; the name
    takes no part in equality or hashing.
    """

    id: Identifier
    name: str = field(default="", compare=False)

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name}


def _is_non_empty_str(v: Any) -> bool:
    return isinstance(v, str) and v.strip() != ""


def _is_identifier(v: Any) -> bool:
    if isinstance(v, bool):
        return False
    return isinstance(v, int) or _is_non_empty_str(v)


def validate_stakeholder(data: Any) -> List[str]:
    """
    Returns a list of validation error messages. Empty list means valid.
    """
    if isinstance(data, StakeholderRef):
        data = data.to_dict()
    if not isinstance(data, Mapping):
        return [f"Stakeholder must be a mapping, got {type(data).__name__}"]

    errors: List[str] = []
    if "id" not in data or data["id"] is None:
        errors.append("Missing required field: id")
    elif not _is_identifier(data["id"]):
        errors.append("Field 'id' must be a non-empty string or an integer")

    name = data.get("name")
    if name is not None and not isinstance(name, str):
        errors.append("Field 'name' must be a string if provided")
    return errors


def coerce_stakeholder(value: Any) -> Optional[StakeholderRef]:
    """Turn a host-supplied value into a StakeholderRef.

    Accepts a StakeholderRef or a mapping with ``id``/``name``. Anything
    missing or malformed yields None rather than an error.
    """
    if value is None:
        return None
    if isinstance(value, StakeholderRef):
        return value
    if validate_stakeholder(value):
        return None
    return StakeholderRef(id=value["id"], name=value.get("name") or "")
