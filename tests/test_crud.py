# tests/test_crud.py
import pytest
from carfinder import crud, models
from carfinder.errors import DuplicateDealerError


def _listing(db, source_id, **kw):
    obj = models.Listing(source="dealer:1", source_id=source_id, hash_signature=source_id, **kw)
    db.add(obj)
    db.commit()
    return obj


def test_get_listing(db):
    obj = _listing(db, "test123", title="Test Car", price=1000, url="http://x")
    assert crud.get_listing(db, obj.id).title == "Test Car"
    assert crud.get_listing(db, obj.id + 1) is None
    assert crud.get_listing_by_source(db, "dealer:1", "test123").id == obj.id
    assert crud.get_listing_by_source(db, "dealer:2", "test123") is None


def test_find_listings_by_filters(db):
    _listing(db, "civic", make="Honda", model="Civic", year=2019, price=17000, mileage=40000)
    _listing(db, "accord", make="Honda", model="Accord", year=2014, price=11000, mileage=90000)
    _listing(db, "f150", make="Ford", model="F-150", year=2020, price=32000, mileage=30000)

    def ids(**filters):
        return sorted(l.source_id for l in crud.find_listings_by_filters(db, filters))

    assert ids() == ["accord", "civic", "f150"]
    assert ids(make="honda") == ["accord", "civic"]
    assert ids(make=" HON ", model="civ") == ["civic"]
    assert ids(min_year=2015) == ["civic", "f150"]
    assert ids(max_price=20000) == ["accord", "civic"]
    assert ids(max_miles=50000, make="") == ["civic", "f150"]
    assert len(crud.find_listings_by_filters(db, {}, take=2)) == 2


def test_find_listings_sort_options(db):
    _listing(db, "civic", make="Honda", year=2019, price=17000, mileage=40000)
    _listing(db, "accord", make="Honda", year=2014, price=11000, mileage=90000)
    _listing(db, "f150", make="Ford", year=2020, price=32000, mileage=30000)

    def ids(sort):
        return [l.source_id for l in crud.find_listings_by_filters(db, {}, sort=sort)]

    assert ids("price_asc") == ["accord", "civic", "f150"]
    assert ids("price_desc") == ["f150", "civic", "accord"]
    assert ids("mileage_asc") == ["f150", "civic", "accord"]
    assert ids("year_desc") == ["f150", "civic", "accord"]
    assert crud.resolve_sort("cheapest") == crud.DEFAULT_SORT


def test_sort_ties_break_on_id(db):
    first = _listing(db, "a", price=5000)
    second = _listing(db, "b", price=5000)
    same_time = first.updated_at
    second.updated_at = same_time
    db.commit()
    assert [l.id for l in crud.find_listings_by_filters(db, {}, sort="price_asc")] == [first.id, second.id]


def test_search_listings_pages(db):
    for n in range(5):
        _listing(db, f"car{n}", make="Honda", price=1000 * (n + 1))
    _listing(db, "other", make="Ford", price=500)

    first = crud.search_listings(db, {"make": "honda"}, page=1, page_size=2, sort="price_asc")
    assert first["total"] == 5
    assert [l.source_id for l in first["items"]] == ["car0", "car1"]
    assert first["has_next_page"] is True

    last = crud.search_listings(db, {"make": "honda"}, page=3, page_size=2, sort="price_asc")
    assert [l.source_id for l in last["items"]] == ["car4"]
    assert last["has_next_page"] is False

    clamped = crud.search_listings(db, {}, page=0, page_size=500, sort="nope")
    assert (clamped["page"], clamped["page_size"], clamped["sort"]) == (1, crud.MAX_PAGE_SIZE, crud.DEFAULT_SORT)
    assert clamped["total"] == 6


def test_create_dealer_adds_owner_membership(db):
    dealer = crud.create_dealer(db, "Northside Cars", email="boss@northside.example", phone="555-0101")
    user = db.query(models.User).filter_by(email="boss@northside.example").one()
    assert user.role == models.ROLE_DEALER
    membership = db.query(models.DealerMembership).one()
    assert (membership.dealer_id, membership.user_id, membership.role) == (dealer.id, user.id, models.MEMBERSHIP_OWNER)


def test_create_dealer_keeps_staff_role(db, staff_user):
    crud.create_dealer(db, "Staff Run Lot", email="STAFF@carfinder.example")
    db.refresh(staff_user)
    assert staff_user.role == models.ROLE_STAFF
    assert db.query(models.DealerMembership).count() == 1


def test_dealer_name_and_email_are_unique_case_insensitive(db):
    crud.create_dealer(db, "Northside Cars", email="boss@northside.example")
    with pytest.raises(DuplicateDealerError):
        crud.create_dealer(db, "NORTHSIDE cars")
    with pytest.raises(DuplicateDealerError):
        crud.create_dealer(db, "Other Name", email="Boss@Northside.Example")
    crud.create_dealer(db, "Southside Cars")
    assert db.query(models.Dealer).count() == 2


def test_saved_search_crud(db, buyer):
    filters = {"make": "Honda", "model": "", "min_year": 2015, "max_price": 20000, "max_miles": 80000}
    first = crud.create_saved_search(db, buyer.id, filters, zip=" 60601 ")
    second = crud.create_saved_search(db, buyer.id, filters, zip="  ", notify="weekly")
    assert first.zip == "60601"
    assert second.zip is None
    assert [s.id for s in crud.list_saved_searches(db, buyer.id)] == [second.id, first.id]

    assert crud.delete_saved_search(db, first.id, buyer.id + 1) is False
    assert crud.delete_saved_search(db, first.id, buyer.id) is True
    assert crud.delete_saved_search(db, first.id, buyer.id) is False


def test_get_user_by_api_key(db, buyer):
    assert crud.get_user_by_api_key(db, "buyer-key").id == buyer.id
    assert crud.get_user_by_api_key(db, "nope") is None
    assert crud.get_user_by_api_key(db, "") is None
