from __future__ import annotations

from datetime import datetime, timezone

import pytest
import requests

from terrapulse.entities import FailureReason, Location
from terrapulse.providers.base import RequestConfig
from terrapulse.providers.firms import FirmsClient
from terrapulse.providers.geocoder import KNOWN_PLACES, NominatimGeocoder, geocode_location
from terrapulse.providers.nasa_power import NasaPowerClient
from terrapulse.providers.openaq import OpenAQClient


NOW = datetime(2024, 6, 15, 12, tzinfo=timezone.utc)
POWER_URL = "https://power.test/api/temporal/daily/point"
FIRMS_BASE = "https://firms.test/api/area/csv"
OPENAQ_BASE = "https://openaq.test/v3"
NOMINATIM_BASE = "https://nominatim.test"

NYC = Location(lat=40.7128, lng=-74.0060)


def power_payload(**series):
    return {"header": {"fill_value": -999}, "properties": {"parameter": series}}


def make_power() -> NasaPowerClient:
    return NasaPowerClient(base_url=POWER_URL, clock=lambda: NOW)


# NASA POWER -------------------------------------------------------------

def test_power_takes_newest_value_and_skips_fill_sentinel(requests_mock):
    requests_mock.get(
        POWER_URL,
        json=power_payload(
            T2M={"20240612": 21.5, "20240613": 22.456, "20240614": -999},
            PRECTOTCORR={"20240613": 3.2, "20240614": 0.0},
            GWETTOP={"20240613": -999.0, "20240614": -999.0},
        ),
    )

    result = make_power().fetch(NYC)

    assert result.succeeded
    assert result.status == "ok"
    assert result.fields == {"weather.current_temp_c": 22.456, "water.precipitation_mm": 0.0}
    assert result.observed_at == datetime(2024, 6, 14, tzinfo=timezone.utc)
    query = requests_mock.last_request.qs
    assert query["start"] == ["20240605"]
    assert query["end"] == ["20240615"]
    assert query["latitude"] == ["40.7128"]


def test_power_honours_custom_fill_value(requests_mock):
    requests_mock.get(
        POWER_URL,
        json={
            "header": {"fill_value": -9999.0},
            "properties": {"parameter": {"TS": {"20240613": 17.0, "20240614": -9999.0}}},
        },
    )

    result = make_power().fetch(NYC)

    assert result.fields == {"soil.temperature": 17.0}


def test_power_non_mapping_header_is_malformed(requests_mock):
    requests_mock.get(POWER_URL, json={"header": [1], "properties": {"parameter": {"T2M": {"20240614": 20.0}}}})

    result = make_power().fetch(NYC)

    assert result.reason == FailureReason.MALFORMED


def test_power_sends_api_key_when_configured(requests_mock):
    requests_mock.get(POWER_URL, json=power_payload(T2M={"20240614": 20.0}))
    client = NasaPowerClient(api_key="power-key", base_url=POWER_URL, clock=lambda: NOW)

    client.fetch(NYC)

    assert requests_mock.last_request.qs["api_key"] == ["power-key"]


@pytest.mark.parametrize(
    "response_kwargs, reason",
    [
        ({"status_code": 500, "text": "boom"}, FailureReason.HTTP_ERROR),
        ({"status_code": 429, "text": "slow down"}, FailureReason.HTTP_ERROR),
        ({"text": "<html>not json</html>"}, FailureReason.MALFORMED),
        ({"json": {"properties": {}}}, FailureReason.MALFORMED),
        ({"exc": requests.exceptions.ConnectTimeout}, FailureReason.TIMEOUT),
        ({"exc": requests.exceptions.ConnectionError}, FailureReason.REQUEST_FAILED),
    ],
)
def test_power_failures_become_failed_results(requests_mock, response_kwargs, reason):
    requests_mock.get(POWER_URL, **response_kwargs)

    result = make_power().fetch(NYC)

    assert not result.succeeded
    assert result.reason == reason
    assert result.fields == {}


def test_request_config_timeout_is_passed_to_session(requests_mock):
    requests_mock.get(POWER_URL, json=power_payload())
    client = NasaPowerClient(
        base_url=POWER_URL, clock=lambda: NOW, request_config=RequestConfig(timeout=2.5)
    )

    client.fetch(NYC)

    assert requests_mock.last_request.timeout == 2.5


# FIRMS ------------------------------------------------------------------

FIRMS_CSV = (
    "latitude,longitude,bright_ti4,acq_date,acq_time,confidence\n"
    "10.1,20.1,330.2,2024-06-14,0142,n\n"
    "10.2,19.9,331.0,2024-06-14,1318,h\n"
)


def make_firms(key="map-key") -> FirmsClient:
    return FirmsClient(key, base_url=FIRMS_BASE)


def test_firms_area_url_uses_bounding_box():
    url = make_firms().area_url(Location(lat=10.0, lng=20.0))

    assert url == f"{FIRMS_BASE}/map-key/VIIRS_NOAA20_NRT/19.5000,9.5000,20.5000,10.5000/1"


def test_firms_area_url_clamps_at_the_antimeridian():
    url = make_firms().area_url(Location(lat=89.9, lng=179.8))

    assert "/179.3000,89.4000,180.0000,90.0000/" in url


def test_firms_counts_detections(requests_mock):
    client = make_firms()
    location = Location(lat=10.0, lng=20.0)
    requests_mock.get(client.area_url(location), text=FIRMS_CSV)

    result = client.fetch(location)

    assert result.fields == {"fire.active_fires": 2}
    assert result.observed_at == datetime(2024, 6, 14, 13, 18, tzinfo=timezone.utc)


def test_firms_header_only_means_no_fires(requests_mock):
    client = make_firms()
    requests_mock.get(client.area_url(NYC), text=FIRMS_CSV.splitlines()[0] + "\n")

    result = client.fetch(NYC)

    assert result.succeeded
    assert result.fields == {"fire.active_fires": 0}
    assert result.observed_at is None


def test_firms_plain_text_error_is_malformed(requests_mock):
    client = make_firms()
    requests_mock.get(client.area_url(NYC), text="Invalid MAP_KEY.")

    result = client.fetch(NYC)

    assert result.reason == FailureReason.MALFORMED


def test_firms_without_key_makes_no_request(requests_mock):
    result = make_firms(key=None).fetch(NYC)

    assert result.reason == FailureReason.UNCONFIGURED
    assert not requests_mock.called


# OpenAQ -----------------------------------------------------------------

STATIONS = {
    "results": [
        {
            "id": 2178,
            "sensors": [
                {"id": 11, "parameter": {"name": "pm25", "units": "µg/m³"}},
                {"id": 12, "parameter": {"name": "co", "units": "µg/m³"}},
                {"id": 13, "parameter": {"name": "o3", "units": "ppm"}},
            ],
        }
    ]
}


def make_openaq(key="aq-key") -> OpenAQClient:
    return OpenAQClient(key, base_url=OPENAQ_BASE)


def test_openaq_normalizes_latest_readings(requests_mock):
    requests_mock.get(f"{OPENAQ_BASE}/locations", json=STATIONS)
    requests_mock.get(
        f"{OPENAQ_BASE}/locations/2178/latest",
        json={
            "results": [
                {"sensorsId": 11, "value": 35.0, "datetime": {"utc": "2024-06-15T10:00:00Z"}},
                {"sensorsId": 12, "value": 458.0, "datetime": {"utc": "2024-06-15T11:00:00Z"}},
                {"sensorsId": 13, "value": 0.03, "datetime": {"utc": "2024-06-15T11:30:00Z"}},
            ]
        },
    )

    result = make_openaq().fetch(NYC)

    assert result.fields["air_quality.aerosol_index"] == pytest.approx(0.35)
    assert result.fields["air_quality.co"] == pytest.approx(0.4)
    assert result.fields["air_quality.pm25"] == 35.0
    assert result.observed_at == datetime(2024, 6, 15, 11, tzinfo=timezone.utc)
    first = requests_mock.request_history[0]
    assert first.headers["X-API-Key"] == "aq-key"
    assert first.qs["coordinates"] == ["40.7128,-74.0060"]


def test_openaq_skips_negative_readings(requests_mock):
    requests_mock.get(f"{OPENAQ_BASE}/locations", json=STATIONS)
    requests_mock.get(
        f"{OPENAQ_BASE}/locations/2178/latest",
        json={"results": [{"sensorsId": 11, "value": -1.0, "datetime": {"utc": "2024-06-15T10:00:00Z"}}]},
    )

    result = make_openaq().fetch(NYC)

    assert result.succeeded
    assert result.fields == {}


def test_openaq_without_nearby_station_is_empty_success(requests_mock):
    requests_mock.get(f"{OPENAQ_BASE}/locations", json={"results": []})

    result = make_openaq().fetch(NYC)

    assert result.succeeded
    assert result.fields == {}
    assert requests_mock.call_count == 1


def test_openaq_missing_results_is_malformed(requests_mock):
    requests_mock.get(f"{OPENAQ_BASE}/locations", json={"detail": "nope"})

    assert make_openaq().fetch(NYC).reason == FailureReason.MALFORMED


def test_openaq_non_mapping_station_is_malformed(requests_mock):
    requests_mock.get(f"{OPENAQ_BASE}/locations", json={"results": ["oops"]})

    assert make_openaq().fetch(NYC).reason == FailureReason.MALFORMED


def test_openaq_without_key_is_unconfigured(requests_mock):
    assert make_openaq(key=None).fetch(NYC).reason == FailureReason.UNCONFIGURED
    assert not requests_mock.called


# Nominatim --------------------------------------------------------------

def make_geocoder() -> NominatimGeocoder:
    return NominatimGeocoder(user_agent="terrapulse-tests/1.0", base_url=NOMINATIM_BASE)


def test_forward_lookup_returns_location(requests_mock):
    requests_mock.get(
        f"{NOMINATIM_BASE}/search",
        json=[{"lat": "48.8566", "lon": "2.3522", "display_name": "Paris, Ile-de-France, France"}],
    )

    location = make_geocoder().forward("Paris")

    assert location == Location(lat=48.8566, lng=2.3522, name="Paris, Ile-de-France, France")
    assert requests_mock.last_request.headers["User-Agent"] == "terrapulse-tests/1.0"


@pytest.mark.parametrize("response_kwargs", [{"json": []}, {"status_code": 503, "text": "busy"}])
def test_forward_lookup_returns_none_without_match(requests_mock, response_kwargs):
    requests_mock.get(f"{NOMINATIM_BASE}/search", **response_kwargs)

    assert make_geocoder().forward("Atlantis") is None


def test_reverse_lookup_builds_short_name(requests_mock):
    requests_mock.get(
        f"{NOMINATIM_BASE}/reverse",
        json={"display_name": "Paris, Ile-de-France, France", "address": {"city": "Paris", "country": "France"}},
    )

    assert make_geocoder().reverse(48.8566, 2.3522) == "Paris, France"


@pytest.mark.parametrize(
    "payload, expected",
    [
        ({"address": "not-a-dict", "display_name": "Quito, Pichincha, Ecuador"}, "Quito, Pichincha"),
        ({"address": "not-a-dict"}, None),
        ({"display_name": 42}, None),
    ],
)
def test_reverse_lookup_tolerates_odd_payloads(requests_mock, payload, expected):
    requests_mock.get(f"{NOMINATIM_BASE}/reverse", json=payload)

    assert make_geocoder().reverse(-0.18, -78.47) == expected


def test_geocoder_as_source_contributes_place_name(requests_mock):
    requests_mock.get(
        f"{NOMINATIM_BASE}/reverse",
        json={"address": {"town": "Ithaca", "country": "United States"}},
    )

    result = make_geocoder().fetch(Location(lat=42.44, lng=-76.5))

    assert result.fields == {"location.place_name": "Ithaca, United States"}


def test_geocoder_source_fails_on_reverse_error(requests_mock):
    requests_mock.get(f"{NOMINATIM_BASE}/reverse", json={"error": "Unable to geocode"})

    result = make_geocoder().fetch(Location(lat=0.0, lng=-140.0))

    assert result.reason == FailureReason.REQUEST_FAILED


def test_geocode_location_parses_coordinates():
    location = geocode_location(" 40.5, -73.9 ")

    assert (location.lat, location.lng) == (40.5, -73.9)


def test_geocode_location_rejects_out_of_range_coordinates():
    assert geocode_location("95, 10") is None


def test_geocode_location_knows_well_known_places():
    assert geocode_location("New York City") == KNOWN_PLACES["new york"]


def test_geocode_location_defers_to_forward_lookup(requests_mock):
    requests_mock.get(
        f"{NOMINATIM_BASE}/search",
        json=[{"lat": "-33.8688", "lon": "151.2093", "display_name": "Sydney, Australia"}],
    )

    location = geocode_location("Sydney", make_geocoder())

    assert location.name == "Sydney, Australia"
    assert geocode_location("Sydney") is None
