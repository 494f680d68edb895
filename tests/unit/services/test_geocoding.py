"""
Unit tests for reverse geocoding.
"""

from unittest.mock import MagicMock

import requests

from galleryingest.services.geocoding import DEFAULT_GEOCODE_URL, GeocodeResult, ReverseGeocoder, get_reverse_geocoder


def make_response(status_code: int = 200, payload=None) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    return response


class TestReverseGeocoder:
    """Test cases for ReverseGeocoder."""

    def setup_method(self):
        """Set up test fixtures."""
        self.session = MagicMock()
        self.geocoder = ReverseGeocoder(
            url="https://geo.example.com/reverse",
            timeout=2.5,
            user_agent="tests/1.0",
            language="en",
            session=self.session,
        )

    def test_geocode_success(self):
        self.session.get.return_value = make_response(
            payload={
                "display_name": "Shibuya, Tokyo, Japan",
                "address": {"city": "Tokyo", "country": "Japan", "state": "Tokyo Metropolis"},
            }
        )

        result = self.geocoder.geocode(35.6581, 139.7017)

        assert result == GeocodeResult(city="Tokyo", country="Japan", location_name="Shibuya, Tokyo, Japan")

    def test_request_parameters_and_timeout(self):
        self.session.get.return_value = make_response(payload={"display_name": "x", "address": {}})

        self.geocoder.geocode(1.5, 2.5)

        args, kwargs = self.session.get.call_args
        assert args[0] == "https://geo.example.com/reverse"
        assert kwargs["params"]["lat"] == 1.5
        assert kwargs["params"]["lon"] == 2.5
        assert kwargs["timeout"] == 2.5
        assert kwargs["headers"]["User-Agent"] == "tests/1.0"
        assert self.session.get.call_count == 1

    def test_city_fallback_order(self):
        self.session.get.return_value = make_response(
            payload={"display_name": "Somewhere", "address": {"village": "Hamlet", "county": "Shire"}}
        )

        assert self.geocoder.geocode(1.0, 2.0).city == "Hamlet"

    def test_county_then_state_fallback(self):
        self.session.get.return_value = make_response(
            payload={"display_name": "Somewhere", "address": {"county": "Shire", "state": "Realm"}}
        )

        assert self.geocoder.geocode(1.0, 2.0).city == "Shire"

    def test_timeout_returns_none(self):
        self.session.get.side_effect = requests.Timeout("too slow")

        assert self.geocoder.geocode(1.0, 2.0) is None

    def test_connection_error_returns_none(self):
        self.session.get.side_effect = requests.ConnectionError("offline")

        assert self.geocoder.geocode(1.0, 2.0) is None

    def test_non_200_returns_none(self):
        self.session.get.return_value = make_response(status_code=503, payload={})

        assert self.geocoder.geocode(1.0, 2.0) is None

    def test_provider_error_payload_returns_none(self):
        self.session.get.return_value = make_response(payload={"error": "Unable to geocode"})

        assert self.geocoder.geocode(0.0, 0.0) is None

    def test_empty_payload_returns_none(self):
        self.session.get.return_value = make_response(payload={})

        assert self.geocoder.geocode(0.0, 0.0) is None

    def test_invalid_json_returns_none(self):
        response = make_response()
        response.json.side_effect = ValueError("not json")
        self.session.get.return_value = response

        assert self.geocoder.geocode(0.0, 0.0) is None

    def test_defaults_from_configuration(self, monkeypatch):
        from galleryingest.config import get_config

        monkeypatch.setenv("GEOCODE_TIMEOUT", "3")
        get_config().clear_cache()

        geocoder = ReverseGeocoder(session=MagicMock())

        assert geocoder.url == DEFAULT_GEOCODE_URL
        assert geocoder.timeout == 3.0

    def test_get_reverse_geocoder_singleton(self):
        assert get_reverse_geocoder() is get_reverse_geocoder()
