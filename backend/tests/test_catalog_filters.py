import pytest

from conftest import FIXED_NOW, guide_request, make_user, vehicle_request
from lankatours.models import Guide, GuideFilters, Identity, VehicleFilters
from lankatours.services.catalog import collect_facet, filter_guides
from lankatours.services.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError


def _guide(guide_id: str, hourly_rate: float, locations: list[str], languages=None) -> Guide:
    return Guide(
        id=guide_id,
        owner_user_id=f"usr_{guide_id}",
        guide_id=f"SLTDA-{guide_id}",
        experience=3,
        languages=languages or ["English"],
        hourly_rate=hourly_rate,
        daily_rate=hourly_rate * 6,
        locations=locations,
        created_at=FIXED_NOW,
    )


def test_filter_guides_by_location_and_rate():
    guides = [
        _guide("g1", 40, ["Kandy", "Nuwara Eliya"]),
        _guide("g2", 60, ["Kandy"]),
        _guide("g3", 35, ["Galle"]),
        _guide("g4", 50, ["Kandy"]),
    ]
    matches = filter_guides(guides, GuideFilters(location="Kandy", max_rate=50))
    assert [guide.id for guide in matches] == ["g1", "g4"]


def test_empty_filters_keep_everything():
    guides = [_guide("g1", 40, ["Kandy"]), _guide("g2", 60, ["Ella"])]
    assert filter_guides(guides, GuideFilters()) == guides
    assert filter_guides(guides, GuideFilters(location="", language="")) == guides


def test_collect_facet_sorted_and_distinct():
    guides = [
        _guide("g1", 40, ["Kandy", "Ella"], languages=["German", "English"]),
        _guide("g2", 60, ["Kandy"], languages=["English"]),
    ]
    assert collect_facet(guides, "locations") == ["Ella", "Kandy"]
    assert collect_facet(guides, "languages") == ["English", "German"]


def test_register_guide_promotes_role_once(market):
    owner = make_user(market, "Guide")
    guide = market.catalog.register_guide(owner, guide_request(languages=[" English ", "English", ""]))
    assert guide.languages == ["English"]
    assert guide.rating == 0.0
    assert guide.total_reviews == 0
    assert market.accounts.identity(owner.user_id).role == "guide"
    assert market.catalog.get_my_guide(owner).id == guide.id

    with pytest.raises(ConflictError):
        market.catalog.register_guide(owner, guide_request())
    with pytest.raises(ConflictError):
        market.catalog.register_vehicle(owner, vehicle_request())


def test_register_guide_rejects_duplicate_government_id(market):
    first = make_user(market, "First")
    second = make_user(market, "Second")
    market.catalog.register_guide(first, guide_request(guide_id="SLTDA-42"))
    with pytest.raises(ConflictError):
        market.catalog.register_guide(second, guide_request(guide_id="SLTDA-42"))
    assert market.accounts.identity(second.user_id).role == "tourist"


def test_register_guide_validation(market):
    owner = make_user(market, "Guide")
    with pytest.raises(ValidationError):
        market.catalog.register_guide(owner, guide_request(languages=[]))
    with pytest.raises(ValidationError):
        market.catalog.register_guide(owner, guide_request(experience=-1))
    with pytest.raises(ValidationError):
        market.catalog.register_guide(owner, guide_request(bio="x" * 501))
    with pytest.raises(AuthorizationError):
        market.catalog.register_guide(Identity(user_id=owner.user_id, role="admin"), guide_request())


def test_register_vehicle(market):
    owner = make_user(market, "Driver")
    vehicle = market.catalog.register_vehicle(owner, vehicle_request(license_plate="wp cab-1234"))
    assert vehicle.license_plate == "WP CAB-1234"
    assert market.accounts.identity(owner.user_id).role == "vehicle-owner"

    other = make_user(market, "Other")
    with pytest.raises(ConflictError):
        market.catalog.register_vehicle(other, vehicle_request(license_plate="WP CAB-1234"))
    with pytest.raises(ValidationError):
        market.catalog.register_vehicle(other, vehicle_request(vehicle_type="boat"))
    with pytest.raises(ValidationError):
        market.catalog.register_vehicle(other, vehicle_request(vehicle_year=1980))
    with pytest.raises(ValidationError):
        market.catalog.register_vehicle(other, vehicle_request(amenities=["jacuzzi"]))
    with pytest.raises(ValidationError):
        market.catalog.register_vehicle(other, vehicle_request(capacity=0))


def test_listings_hide_unavailable_targets(market):
    kandy = market.catalog.register_guide(make_user(market, "Kandy"), guide_request(locations=["Kandy"], hourly_rate=40))
    pricey = market.catalog.register_guide(make_user(market, "Pricey"), guide_request(locations=["Kandy"], hourly_rate=80))
    ella_owner = make_user(market, "Ella")
    ella = market.catalog.register_guide(ella_owner, guide_request(locations=["Ella"], languages=["French"]))

    listing = market.catalog.list_guides(GuideFilters(location="Kandy", max_rate=50))
    assert [item.id for item in listing.items] == [kandy.id]
    assert listing.count == 1
    assert listing.facets["locations"] == ["Ella", "Kandy"]
    assert "French" in listing.facets["languages"]

    market.catalog.set_availability("guide", ella.id, ella_owner, False)
    listing = market.catalog.list_guides()
    assert {item.id for item in listing.items} == {kandy.id, pricey.id}
    assert listing.facets["locations"] == ["Kandy"]

    with pytest.raises(AuthorizationError):
        market.catalog.set_availability("guide", kandy.id, ella_owner, False)


def test_vehicle_listing_filters(market):
    van = market.catalog.register_vehicle(make_user(market, "Van"), vehicle_request())
    tuktuk = market.catalog.register_vehicle(
        make_user(market, "Tuk"),
        vehicle_request(vehicle_type="tuktuk", capacity=3, amenities=[], hourly_rate=10, locations=["Galle"]),
    )

    assert [v.id for v in market.catalog.list_vehicles(VehicleFilters(min_capacity=5)).items] == [van.id]
    assert [v.id for v in market.catalog.list_vehicles(VehicleFilters(vehicle_type="tuktuk")).items] == [tuktuk.id]
    assert [v.id for v in market.catalog.list_vehicles(VehicleFilters(amenity="wifi")).items] == [van.id]

    listing = market.catalog.list_vehicles()
    assert listing.facets["vehicle_types"] == ["tuktuk", "van"]
    assert listing.facets["amenities"] == ["ac", "wifi"]


def test_missing_targets(market):
    with pytest.raises(NotFoundError):
        market.catalog.get_guide("gd_missing")
    with pytest.raises(NotFoundError):
        market.catalog.get_my_vehicle(make_user(market, "Nobody"))
