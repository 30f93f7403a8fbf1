"""
StakeholderSelector: pick one stakeholder from a remote directory.

One instance owns one session: the committed selection, the text shown
in the input, and the latest candidate list. The initial selection is
resolved once in the constructor; after that the selection changes only
through ``select``/``clear`` and the candidates only through completed
lookups.

All methods must be called from the event loop thread.
"""

import asyncio
from typing import Any, Callable, List, Mapping, Optional, Tuple

from .client import SearchClient, build_client
from .config import QUIET_PERIOD, Settings
from .initializer import FORM_FIELD, resolve_initial_selection
from .logger import StructuredLogger, get_logger
from .models import StakeholderRef, coerce_stakeholder, validate_stakeholder
from .pipeline import QueryPipeline
from .search import ENTITY_NAMESPACE

ChangeCallback = Callable[[str, Optional[StakeholderRef]], Any]


class SelectorClosedError(RuntimeError):
    """Raised when a closed selector receives input or a selection."""
    pass


class StakeholderSelector:

    def __init__(
        self,
        search_client: Optional[SearchClient],
        on_change: ChangeCallback,
        *,
        form_data: Optional[Mapping[str, Any]] = None,
        current_record: Optional[Mapping[str, Any]] = None,
        selected_row: Optional[Mapping[str, Any]] = None,
        quiet_period: float = QUIET_PERIOD,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        field_name: str = FORM_FIELD,
        entity: str = ENTITY_NAMESPACE,
        logger: Optional[StructuredLogger] = None,
    ):
        """
        Args:
            search_client: Remote search collaborator; None means search is
                unavailable and lookups are skipped
            on_change: Host update callback, called as on_change(field_name, value)
            form_data: Host form state; its "stakeHolder" wins if present
            current_record: CRM record being edited ("Stake_Holder")
            selected_row: Previously selected list row ("stakeHolder")
            quiet_period: Seconds without input before a lookup fires
            loop: Event loop for timers (default: the running loop)
            field_name: Key passed to on_change
            entity: Directory namespace to search
        """
        self.field_name = field_name
        self.logger = logger or get_logger()
        self._on_change = on_change
        self._closed = False

        initial = resolve_initial_selection(form_data, current_record, selected_row)
        self._selected: Optional[StakeholderRef] = initial.selected
        self._display_text: str = initial.display_text
        self.initial_source: Optional[str] = initial.source
        self._candidates: Tuple[StakeholderRef, ...] = ()

        self._pipeline = QueryPipeline(
            search_client,
            self._replace_candidates,
            quiet_period=quiet_period,
            entity=entity,
            loop=loop,
            logger=self.logger,
        )
        self.logger.debug(
            "Selector initialized",
            source=initial.source,
            selected=initial.selected.to_dict() if initial.selected else None,
        )

    @classmethod
    def from_settings(cls, settings: Settings, on_change: ChangeCallback,
                      logger: Optional[StructuredLogger] = None, **kwargs) -> "StakeholderSelector":
        """Build a selector with a Zoho client configured from settings."""
        logger = logger or get_logger()
        kwargs.setdefault("quiet_period", settings.quiet_period)
        return cls(build_client(settings, logger=logger), on_change, logger=logger, **kwargs)

    # State

    @property
    def selected(self) -> Optional[StakeholderRef]:
        return self._selected

    @property
    def display_text(self) -> str:
        return self._display_text

    @property
    def candidates(self) -> Tuple[StakeholderRef, ...]:
        return self._candidates

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def is_dirty(self) -> bool:
        """True while the input holds text that was never committed."""
        committed = self._selected.name if self._selected is not None else ""
        return self._display_text != committed

    # Events

    def on_input(self, text: Optional[str]) -> None:
        """Handle a text-input event (typing or a programmatic clear)."""
        self._ensure_open()
        self._display_text = text or ""
        self._pipeline.submit(self._display_text)

    def select(self, value: Any) -> None:
        """Commit a picked candidate, or clear the selection when value is None.

        A value that is not a stakeholder (free text entered in the input)
        is not committed: it is logged and the selection is left as is.
        """
        self._ensure_open()
        ref = coerce_stakeholder(value)
        if value is not None and ref is None:
            self.logger.warning(
                "Ignoring pick that is not a stakeholder",
                field=self.field_name,
                errors=validate_stakeholder(value),
            )
            return

        self._selected = ref
        if ref is None:
            self._display_text = ""
        self.logger.record_commit()
        self.logger.info(
            "Stakeholder committed" if ref is not None else "Stakeholder cleared",
            field=self.field_name,
            value=ref.to_dict() if ref is not None else None,
        )
        self._on_change(self.field_name, ref)

    def clear(self) -> None:
        self.select(None)

    # Lifecycle

    async def wait_idle(self) -> None:
        """Wait for the armed lookup (if any) and in-flight lookups to finish."""
        await self._pipeline.wait_idle()

    def close(self) -> None:
        """Tear down: cancel the armed lookup and ignore late completions."""
        if self._closed:
            return
        self._closed = True
        self._pipeline.close()
        self.logger.debug("Selector closed", field=self.field_name)

    def __enter__(self) -> "StakeholderSelector":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    async def __aenter__(self) -> "StakeholderSelector":
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.close()

    def _ensure_open(self) -> None:
        if self._closed:
            raise SelectorClosedError("Selector is closed")

    def _replace_candidates(self, results: List[StakeholderRef]) -> None:
        if self._closed:
            return
        self._candidates = tuple(results)
