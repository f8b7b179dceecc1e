import pytest

from dispatch_agent.agent.extract import (
    UNKNOWN_LOCATION,
    extract_location,
    is_confirmation,
    nearest_location,
    parse_cost,
    parse_delivery_request,
)


@pytest.mark.parametrize(
    "text,expected",
    [
        ("Delivery to -3.2351, 55.9623", "Western General Hospital"),
        ("Location: -3.1365, 55.9215", "Royal Infirmary of Edinburgh"),
        ("Coordinates -3.5103, 55.9297", "St John's Hospital"),
        ("Location:   -3.2351  ,   55.9623  ", "Western General Hospital"),
        ("From -3.2087, 55.9235 to -3.1365, 55.9215", "Royal Edinburgh Hospital"),
    ],
)
def test_extract_location_known_points(text, expected):
    assert extract_location(text) == expected


@pytest.mark.parametrize(
    "text",
    [
        "Deliver at 14:00, -3.2351, 55.9623",
        "On 2025-12-15, -3.2351, 55.9623",
        "Deliveries 1, 2 to -3.2351, 55.9623",
    ],
)
def test_integer_pairs_are_not_coordinates(text):
    assert extract_location(text) == "Western General Hospital"


def test_tolerance_boundary_is_inclusive():
    assert extract_location("Coordinates: -3.2371, 55.9623") == "Western General Hospital"


def test_beyond_tolerance_is_unknown():
    assert extract_location("Coordinates: -3.2372, 55.9623") == UNKNOWN_LOCATION


@pytest.mark.parametrize("text", ["Deliver to hospital", "", "Location: abc, def", "Coords: -200.0, 100.0"])
def test_extract_location_sentinel(text):
    assert extract_location(text) == UNKNOWN_LOCATION


def test_nearest_location_picks_closest_entry():
    assert nearest_location(-3.1838, 55.9390) == "Sick Kids Hospital"
    assert nearest_location(0.0, 0.0) is None


def test_parse_delivery_request_fields():
    text = (
        "Schedule a 2kg delivery to Western General Hospital at 14:00 on 2025-12-15, "
        "coordinates -3.2351, 55.9623, needs cooling"
    )
    parsed = parse_delivery_request(text)
    assert parsed is not None
    assert parsed.weight == 2.0
    assert parsed.location == "Western General Hospital"
    assert parsed.date == "2025-12-15"
    assert parsed.time == "14:00"
    assert parsed.coordinates.lng == -3.2351
    assert parsed.coordinates.lat == 55.9623
    assert parsed.cooling is True
    assert parsed.heating is None


def test_parse_delivery_request_partial_fields():
    parsed = parse_delivery_request("Please dispatch 1.5 kg of warm meals")
    assert parsed.weight == 1.5
    assert parsed.heating is True
    assert parsed.date is None
    assert parsed.coordinates is None


def test_parse_delivery_request_needs_trigger():
    assert parse_delivery_request("What drones have cooling?") is None
    assert parse_delivery_request("") is None


def test_cost_with_single_drone():
    info = parse_cost("Drone: Drone #5\nTotal Cost: £12.50")
    assert info.cost == 12.5
    assert info.drones == ["5"]


def test_cost_without_hash_or_currency():
    assert parse_cost("Drone: 3\nCost: £8.99").drones == ["3"]
    assert parse_cost("Drone #7\nTotal Cost: 15.25").cost == 15.25


def test_multi_drone_keeps_textual_order():
    info = parse_cost("Drones Used: #9 and #1\nTotal Cost: £25.00")
    assert info.drones == ["9", "1"]
    assert info.cost == 25.0


@pytest.mark.parametrize(
    "text,cost",
    [
        ("Total Cost: £1,234.56", 1234.56),
        ("Total Cost: £25", 25.0),
        ("Cost: £0.99", 0.99),
        ("Cost: £0.00", 0.0),
        ("**Total Cost:** £63.10", 63.10),
        ("Total Cost: $12.50.", 12.5),
    ],
)
def test_cost_formats(text, cost):
    assert parse_cost(text).cost == pytest.approx(cost)


def test_cost_only_has_no_drones():
    assert parse_cost("Total Cost: £15.00").drones is None


@pytest.mark.parametrize("text", ["Using Drone #5 for delivery", "", "Hello world"])
def test_no_cost_token(text):
    assert parse_cost(text) is None


@pytest.mark.parametrize(
    "text", ["confirm", "  Confirm ", "yes", "OK", "go ahead", "looks good", "yes please", "confirm, thanks", "ok!"]
)
def test_confirmation_phrases(text):
    assert is_confirmation(text)


@pytest.mark.parametrize(
    "text",
    ["I confirmed it yesterday", "confirm the cost first", "yes but change the time", "", "confirmation"],
)
def test_not_confirmation(text):
    assert not is_confirmation(text)
