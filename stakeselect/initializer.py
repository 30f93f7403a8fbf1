"""
Initial selection resolution.

The host can hand the selector a starting value from three places. They
are tested in a fixed order and the first that applies wins:

1. the form-state record (``form_data["stakeHolder"]``)
2. the current CRM record (``current_record["Stake_Holder"]``), only when
   the selected row carries no stakeholder
3. the selected row (``selected_row["stakeHolder"]``)

Missing or malformed sources are skipped, never reported as errors.
"""

from typing import Any, Mapping, NamedTuple, Optional

from .models import StakeholderRef, coerce_stakeholder

FORM_FIELD = "stakeHolder"
RECORD_FIELD = "Stake_Holder"
ROW_FIELD = "stakeHolder"

SOURCE_FORM_DATA = "form_data"
SOURCE_CURRENT_RECORD = "current_record"
SOURCE_SELECTED_ROW = "selected_row"


class InitialSelection(NamedTuple):
    selected: Optional[StakeholderRef]
    display_text: str
    source: Optional[str]


EMPTY_SELECTION = InitialSelection(None, "", None)


def _field(container: Any, key: str) -> Any:
    if not isinstance(container, Mapping):
        return None
    return container.get(key)


def _seeded(ref: StakeholderRef, source: str) -> InitialSelection:
    return InitialSelection(ref, ref.name or "", source)


def resolve_initial_selection(
    form_data: Optional[Mapping[str, Any]] = None,
    current_record: Optional[Mapping[str, Any]] = None,
    selected_row: Optional[Mapping[str, Any]] = None,
) -> InitialSelection:
    """Pick the starting selection and display text from the host's sources."""
    from_form = coerce_stakeholder(_field(form_data, FORM_FIELD))
    if from_form is not None:
        return _seeded(from_form, SOURCE_FORM_DATA)

    row_value = _field(selected_row, ROW_FIELD)
    if not row_value:
        from_record = coerce_stakeholder(_field(current_record, RECORD_FIELD))
        if from_record is not None:
            return _seeded(from_record, SOURCE_CURRENT_RECORD)

    from_row = coerce_stakeholder(row_value)
    if from_row is not None:
        return _seeded(from_row, SOURCE_SELECTED_ROW)

    return EMPTY_SELECTION
