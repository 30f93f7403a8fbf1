"""
Tests for the Zoho search client (network is mocked).
"""

from unittest.mock import MagicMock

import pytest
import requests

from conftest import make_response
from stakeselect.circuit import CircuitBreaker, CircuitOpenError
from stakeselect.client import SearchError, ZohoSearchClient, build_client, parse_search_response
from stakeselect.config import Settings
from stakeselect.models import StakeholderRef


@pytest.fixture
def session():
    s = MagicMock(spec=requests.Session)
    s.headers = {}
    return s


@pytest.fixture
def client(session):
    return ZohoSearchClient("https://www.zohoapis.eu/", "tok-123", timeout=5, session=session)


class TestSearchRequest:
    """Request shape."""

    def test_word_search_request(self, client, session, search_payload):
        """Request should hit the module search endpoint with a trimmed word query."""
        session.get.return_value = make_response(200, search_payload)

        client.search("Accounts", "word", "  acme ")

        session.get.assert_called_once_with(
            "https://www.zohoapis.eu/crm/v2/Accounts/search",
            params={"word": "acme"},
            timeout=5,
        )

    def test_auth_header(self, client, session):
        """Session should carry the Zoho OAuth header."""
        assert session.headers["Authorization"] == "Zoho-oauthtoken tok-123"

    def test_maps_records(self, client, session, search_payload):
        """Records should map to StakeholderRefs by id and Account_Name."""
        session.get.return_value = make_response(200, search_payload)

        refs = client.search("Accounts", "word", "acme")

        assert refs == [
            StakeholderRef("4150868000000224001", "Acme Corp"),
            StakeholderRef("4150868000000224002", "Acme Media"),
        ]
        assert [r.name for r in refs] == ["Acme Corp", "Acme Media"]


class TestParseSearchResponse:
    """Payload handling."""

    def test_no_content_is_empty(self):
        """204 No Content means no matches."""
        assert parse_search_response(make_response(204)) == []

    def test_missing_data_is_empty(self):
        """A body without data means no matches."""
        assert parse_search_response(make_response(200, {"info": {}})) == []

    def test_records_without_id_are_skipped(self):
        """Records without an id are dropped, others kept."""
        payload = {"data": [{"Account_Name": "Ghost"}, {"id": "9", "Account_Name": "Real"}, "junk"]}
        assert parse_search_response(make_response(200, payload)) == [StakeholderRef("9", "Real")]

    def test_missing_name_becomes_empty(self):
        """A missing name becomes an empty string."""
        payload = {"data": [{"id": "9"}]}
        assert parse_search_response(make_response(200, payload))[0].name == ""

    def test_custom_name_field(self):
        """The display-name field is configurable."""
        payload = {"data": [{"id": "9", "Full_Name": "Jane Doe"}]}
        refs = parse_search_response(make_response(200, payload), name_field="Full_Name")
        assert refs[0].name == "Jane Doe"

    def test_non_json_is_malformed(self):
        """A non-JSON body is a malformed payload."""
        with pytest.raises(SearchError, match="malformed"):
            parse_search_response(make_response(200, text="<html>oops</html>"))

    def test_data_not_list_is_malformed(self):
        """data that is not a list is a malformed payload."""
        with pytest.raises(SearchError, match="malformed"):
            parse_search_response(make_response(200, {"data": {"id": "1"}}))

    def test_top_level_list_is_malformed(self):
        """A top-level list is a malformed payload."""
        with pytest.raises(SearchError, match="malformed"):
            parse_search_response(make_response(200, [{"id": "1"}]))


class TestErrorHandling:
    """Transport failures surface as SearchError."""

    def test_timeout(self, client, session):
        """Timeouts raise a transient SearchError."""
        session.get.side_effect = requests.exceptions.Timeout()
        with pytest.raises(SearchError, match="timed out") as exc_info:
            client.search("Accounts", "word", "acme")
        assert exc_info.value.transient

    def test_connection_error(self, client, session):
        """Connection failures raise a transient SearchError."""
        session.get.side_effect = requests.exceptions.ConnectionError("refused")
        with pytest.raises(SearchError) as exc_info:
            client.search("Accounts", "word", "acme")
        assert exc_info.value.transient

    def test_server_error(self, client, session):
        """5xx responses raise a transient SearchError with the status."""
        session.get.return_value = make_response(503, {"code": "SERVICE_UNAVAILABLE"})
        with pytest.raises(SearchError, match="503") as exc_info:
            client.search("Accounts", "word", "acme")
        assert exc_info.value.status == 503
        assert exc_info.value.transient

    def test_unauthorized(self, client, session):
        """401 raises a non-transient SearchError."""
        session.get.return_value = make_response(401, {"code": "INVALID_TOKEN"})
        with pytest.raises(SearchError, match="not authorized") as exc_info:
            client.search("Accounts", "word", "acme")
        assert not exc_info.value.transient

    def test_search_error_is_value_error(self):
        """SearchError should be a ValueError."""
        assert issubclass(SearchError, ValueError)


class TestCircuit:
    """The client stops calling a failing service."""

    def test_opens_after_transient_failures(self, session):
        """Repeated timeouts open the circuit and stop requests."""
        session.get.side_effect = requests.exceptions.Timeout()
        breaker = CircuitBreaker(failure_threshold=2, recovery_timeout=60,
                                 counts_as_failure=lambda e: getattr(e, "transient", True))
        client = ZohoSearchClient("https://www.zohoapis.com", "tok", session=session, breaker=breaker)

        for _ in range(2):
            with pytest.raises(SearchError):
                client.search("Accounts", "word", "acme")
        with pytest.raises(CircuitOpenError):
            client.search("Accounts", "word", "acme")

        assert session.get.call_count == 2

    def test_client_errors_do_not_open(self, client, session):
        """Auth failures never open the circuit."""
        session.get.return_value = make_response(401, {"code": "INVALID_TOKEN"})
        for _ in range(5):
            with pytest.raises(SearchError):
                client.search("Accounts", "word", "acme")
        assert client.breaker.state == CircuitBreaker.CLOSED

    def test_malformed_payload_does_not_open(self, client, session):
        """Malformed payloads never open the circuit."""
        session.get.return_value = make_response(200, text="not json")
        for _ in range(5):
            with pytest.raises(SearchError):
                client.search("Accounts", "word", "acme")
        assert client.breaker.state == CircuitBreaker.CLOSED


class TestBuildClient:
    """Client construction from settings."""

    def test_no_token_means_unavailable(self):
        """No access token means no client."""
        assert build_client(Settings(access_token=None)) is None

    def test_builds_client(self):
        """Settings should carry through to the client."""
        client = build_client(Settings(api_domain="https://www.zohoapis.in", access_token="t", timeout=3))
        assert isinstance(client, ZohoSearchClient)
        assert client.api_domain == "https://www.zohoapis.in"
        assert client.timeout == 3
        client.close()
