"""Remote directory search over the Zoho CRM REST API."""

from typing import List, Optional, Protocol

import requests

from .circuit import CircuitBreaker, is_transient_error, should_count_http_status
from .config import DEFAULT_TIMEOUT, Settings
from .logger import StructuredLogger, get_logger
from .models import StakeholderRef
from .search import (
    ENTITY_NAMESPACE,
    MATCH_MODE,
    NAME_FIELD,
    build_search_params,
    build_search_url,
)


class SearchError(ValueError):
    """A remote lookup failed: transport error, HTTP error or malformed payload."""

    def __init__(self, message: str, status: Optional[int] = None, transient: bool = False):
        super().__init__(message)
        self.status = status
        self.transient = transient


class SearchClient(Protocol):
    def search(self, entity: str, match_mode: str, query: str) -> List[StakeholderRef]:
        ...


def _counts_against_circuit(exc: Exception) -> bool:
    if isinstance(exc, SearchError):
        return exc.transient
    return is_transient_error(exc)


def parse_search_response(resp: requests.Response, name_field: str = NAME_FIELD,
                          logger: Optional[StructuredLogger] = None) -> List[StakeholderRef]:
    """Map a search response body to StakeholderRefs.

    204 and a body without ``data`` both mean "no matches".

    Raises:
        SearchError: If the body is not JSON or ``data`` is not a list
    """
    if resp.status_code == 204 or not resp.content:
        return []
    try:
        payload = resp.json()
    except ValueError:
        raise SearchError("Search returned a malformed (non-JSON) payload")
    if not isinstance(payload, dict):
        raise SearchError("Search returned a malformed payload: expected an object")

    data = payload.get("data")
    if not data:
        return []
    if not isinstance(data, list):
        raise SearchError("Search returned a malformed payload: 'data' is not a list")

    refs: List[StakeholderRef] = []
    for record in data:
        if not isinstance(record, dict) or record.get("id") in (None, ""):
            if logger:
                logger.warning("Skipping search record without id", record=record)
            continue
        refs.append(StakeholderRef(id=record["id"], name=record.get(name_field) or ""))
    return refs


class ZohoSearchClient:
    """Blocking search client; the selector runs it off the event loop."""

    def __init__(
        self,
        api_domain: str,
        access_token: str,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
        breaker: Optional[CircuitBreaker] = None,
        name_field: str = NAME_FIELD,
        logger: Optional[StructuredLogger] = None,
    ):
        self.api_domain = api_domain.rstrip("/")
        self.timeout = timeout
        self.name_field = name_field
        self.session = session or requests.Session()
        self.session.headers["Authorization"] = f"Zoho-oauthtoken {access_token}"
        self.breaker = breaker or CircuitBreaker(
            failure_threshold=3,
            recovery_timeout=30,
            counts_as_failure=_counts_against_circuit,
        )
        self.logger = logger or get_logger()

    def search(self, entity: str = ENTITY_NAMESPACE, match_mode: str = MATCH_MODE,
               query: str = "") -> List[StakeholderRef]:
        """Run one search through the circuit breaker.

        Raises:
            SearchError: On any HTTP error, timeout, request failure or bad payload
            CircuitOpenError: While the circuit is open
        """
        return self.breaker.call(self._search, entity, match_mode, query)

    def _search(self, entity: str, match_mode: str, query: str) -> List[StakeholderRef]:
        url = build_search_url(self.api_domain, entity)
        params = build_search_params(query, match_mode)
        resp = self._fetch(url, params, entity)
        return parse_search_response(resp, self.name_field, self.logger)

    def _fetch(self, url: str, params: dict, entity: str) -> requests.Response:
        try:
            resp = self.session.get(url, params=params, timeout=self.timeout)
            resp.raise_for_status()
            return resp
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            if status in (401, 403):
                self.logger.error("Search not authorized; check ZOHO_ACCESS_TOKEN", url=url, status=status)
                raise SearchError(f"{entity} search not authorized ({status})", status=status)
            self.logger.error("Search request failed", url=url, status=status)
            raise SearchError(
                f"{entity} search failed ({status})",
                status=status,
                transient=status is not None and should_count_http_status(status),
            )
        except requests.exceptions.Timeout:
            self.logger.warning("Search request timed out", url=url)
            raise SearchError(f"{entity} search timed out", transient=True)
        except requests.exceptions.ConnectionError as e:
            self.logger.warning("Search service unreachable", url=url, error=str(e))
            raise SearchError(f"{entity} search could not connect: {e}", transient=True)
        except requests.exceptions.RequestException as e:
            self.logger.error("Search request error", url=url, error=str(e))
            raise SearchError(f"{entity} search error: {e}", transient=is_transient_error(e))

    def close(self) -> None:
        self.session.close()


def build_client(settings: Settings, logger: Optional[StructuredLogger] = None) -> Optional[ZohoSearchClient]:
    """Build a client from settings, or None when no access token is configured."""
    logger = logger or get_logger()
    if not settings.access_token:
        logger.warning("ZOHO_ACCESS_TOKEN not set; stakeholder search is unavailable")
        return None
    return ZohoSearchClient(
        api_domain=settings.api_domain,
        access_token=settings.access_token,
        timeout=settings.timeout,
        logger=logger,
    )
