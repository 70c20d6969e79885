from __future__ import annotations

import httpx
import pytest

from fleetdesk.services.geolocation import GeolocationResolver, coordinate_address


def resolver_for(handler) -> GeolocationResolver:
    return GeolocationResolver(
        url="https://geocode.test/reverse",
        enabled=True,
        transport=httpx.MockTransport(handler),
    )


def test_display_name_becomes_address():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen.update(request.url.params)
        return httpx.Response(200, json={"display_name": "Drottninggatan 1, Stockholm"})

    location = resolver_for(handler).resolve({"latitude": 59.33, "longitude": 18.06})

    assert location == {"latitude": 59.33, "longitude": 18.06, "address": "Drottninggatan 1, Stockholm"}
    assert seen["format"] == "json"
    assert seen["lat"] == "59.33"
    assert seen["accept-language"] == "sv"


@pytest.mark.parametrize(
    "handler",
    [
        lambda request: httpx.Response(503),
        lambda request: httpx.Response(200, content=b"not json"),
        lambda request: httpx.Response(200, json={"error": "Unable to geocode"}),
    ],
)
def test_failures_fall_back_to_coordinates(handler):
    location = resolver_for(handler).resolve({"latitude": 59.33, "longitude": 18.06})

    assert location["address"] == "59.330000, 18.060000"


def test_timeout_falls_back_to_coordinates():
    def handler(request):
        raise httpx.ConnectTimeout("timed out", request=request)

    assert resolver_for(handler).reverse_geocode(1.5, 2.5) == coordinate_address(1.5, 2.5)


def test_client_address_is_kept():
    def handler(request):
        raise AssertionError("should not be called")

    location = resolver_for(handler).resolve({"latitude": 59.33, "longitude": 18.06, "address": "Lagret"})

    assert location["address"] == "Lagret"


@pytest.mark.parametrize(
    "raw",
    [
        None,
        {},
        {"latitude": 59.33},
        {"latitude": "north", "longitude": 18.06},
        {"latitude": 91, "longitude": 18.06},
    ],
)
def test_invalid_coordinates_give_none(raw):
    assert GeolocationResolver(enabled=False).resolve(raw) is None


def test_disabled_resolver_uses_coordinates():
    location = GeolocationResolver(enabled=False).resolve({"latitude": "59.5", "longitude": "18"})

    assert location == {"latitude": 59.5, "longitude": 18.0, "address": "59.500000, 18.000000"}
