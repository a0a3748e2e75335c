"""Tests for the single-call vendor widget strategies"""

import pytest

from src.locators.locally import LocallyStrategy, extract_company_id
from src.locators.stockist import StockistStrategy, extract_widget_tag, parse_jsonp, search_distance
from src.locators.storemapper import StoremapperStrategy, extract_token
from src.locators.storepoint import StorepointStrategy, extract_widget_id, map_store, parse_address_tail
from src.shared.http import HttpStatusError, InvalidJsonError


class TestLocally:
    """Tests for the Locally strategy"""

    def test_api_url_pattern_wins(self):
        html = ('<script>var company_id = 999;</script>'
                '<script src="https://www.locally.com/stores/json?foo=1&company_id=12345"></script>')
        assert extract_company_id(html) == "12345"

    def test_widget_variable(self):
        assert extract_company_id("<script>locallyWidgetCompanyId = 777;</script>") == "777"

    def test_generic_pattern_needs_locally_reference(self):
        """A bare company_id on a page that never mentions Locally is ignored."""
        assert extract_company_id("<script>company_id = 5</script>") is None
        assert extract_company_id("<!-- locally.com --><script>company_id: 5</script>") == "5"

    def test_fetch_maps_stores(self, locator_context, mock_response_factory):
        locator_context.session.get.return_value = mock_response_factory(200, json_data={"stores": [
            {"id": 1, "name": "Corner Market", "address": "5 Elm", "city": "Austin",
             "state": "TX", "zip": "78701", "lat": "30.26", "lng": "-97.74"},
            {"id": 2, "city": "Nameless"},
        ]})

        locations = LocallyStrategy().fetch("12345", locator_context)

        assert len(locations) == 1
        assert locations[0].locator_source == "locally"
        assert locations[0].external_id == "1"
        assert locations[0].latitude == 30.26
        url = locator_context.session.get.call_args[0][0]
        assert "company_id=12345" in url and "take=10000" in url

    def test_fetch_error_propagates(self, locator_context, mock_response_factory):
        locator_context.session.get.return_value = mock_response_factory(500, text="boom")
        with pytest.raises(HttpStatusError):
            LocallyStrategy().fetch("12345", locator_context)


class TestStoremapper:
    """Tests for the Storemapper strategy"""

    def test_api_url_token(self):
        html = '<script src="https://storemapper.co/api/stores?token=abcDEF123&x=1"></script>'
        assert extract_token(html) == "abcDEF123"

    def test_data_attribute_token(self):
        assert extract_token('<div id="storemapper" data-storemapper-token="tok_987"></div>') == "tok_987"

    def test_generic_token_needs_eight_chars(self):
        assert extract_token('<script>storemapper({token: "short"})</script>') is None
        assert extract_token('<script>storemapper({"token": "LongToken99"})</script>') == "LongToken99"

    def test_no_reference_no_token(self):
        assert extract_token('<script>token = "abcdefghijk"</script>') is None

    def test_fetch_maps_stores(self, locator_context, mock_response_factory):
        locator_context.session.get.return_value = mock_response_factory(200, json_data={"stores": [
            {"id": "s1", "name": "Bottle Shop", "postal_code": "10001", "latitude": 40.7, "longitude": -74.0},
        ]})

        locations = StoremapperStrategy().fetch("tok_987", locator_context)

        assert locations[0].zip == "10001"
        assert locations[0].has_coordinates
        assert locations[0].locator_source == "storemapper"

    def test_unexpected_shape_yields_nothing(self, locator_context, mock_response_factory):
        locator_context.session.get.return_value = mock_response_factory(200, json_data={"stores": "none"})
        assert StoremapperStrategy().fetch("tok_987", locator_context) == []


class TestStockist:
    """Tests for the Stockist strategy"""

    def test_widget_tag_from_attribute(self):
        assert extract_widget_tag('<div data-stockist-widget-tag="u1234"></div>') == "u1234"

    def test_widget_tag_from_api_path(self):
        assert extract_widget_tag('<script src="https://stockist.co/api/v1/u555/widget.js"></script>') == "u555"

    def test_parse_jsonp(self):
        body = '_stockistConfigCallback_u1({"latitude": 30.1, "max_distance": 250});'
        assert parse_jsonp(body, "https://stockist.co/x") == {"latitude": 30.1, "max_distance": 250}

    def test_parse_jsonp_without_call(self):
        assert parse_jsonp("nothing here", "https://stockist.co/x") == {}

    def test_parse_jsonp_invalid(self):
        with pytest.raises(InvalidJsonError):
            parse_jsonp("cb({not json})", "https://stockist.co/x")

    def test_search_distance_default(self):
        assert search_distance({}) == 50000
        assert search_distance({"distance": 80}) == 80

    def test_fetch_uses_config_centre(self, locator_context, mock_response_factory):
        locator_context.session.get.side_effect = [
            mock_response_factory(200, text='cb({"latitude": 35.2, "longitude": -80.8, "max_distance": 300})'),
            mock_response_factory(200, json_data={"locations": [
                {"id": 9, "name": "Bev Depot", "address_line_1": "9 Oak", "city": "Charlotte",
                 "state": "NC", "postal_code": "28202"},
            ]}),
        ]

        locations = StockistStrategy().fetch("u1234", locator_context)

        assert [loc.name for loc in locations] == ["Bev Depot"]
        search_url = locator_context.session.get.call_args_list[1][0][0]
        assert "latitude=35.2" in search_url
        assert "longitude=-80.8" in search_url
        assert "distance=300" in search_url


class TestStorepoint:
    """Tests for the Storepoint strategy"""

    def test_widget_id_from_constructor(self):
        assert extract_widget_id("<script>new StorepointWidget('15f0a8b2c', 'div')</script>") == "15f0a8b2c"

    def test_widget_id_from_escaped_constructor(self):
        html = "<script>var tpl = 'new StorepointWidget(\\n\"abc123\", opts)';</script>"
        assert extract_widget_id(html) == "abc123"

    def test_widget_id_from_api_url(self):
        assert extract_widget_id("https://api.storepoint.co/v2/zz99/locations") == "zz99"

    def test_address_tail_with_country(self):
        assert parse_address_tail("12 Main St, Austin TX 78701, US") == ("Austin", "TX", "78701", "US")

    def test_address_tail_when_country_supplied(self):
        """An explicit country lets the address end at the City ST ZIP segment."""
        assert parse_address_tail("12 Main St, Austin TX 78701", has_country=True) == \
            ("Austin", "TX", "78701", None)

    def test_address_tail_unparsable(self):
        assert parse_address_tail("Somewhere") == (None, None, None, "Somewhere")

    def test_map_store_prefers_explicit_fields(self):
        location = map_store({
            "id": 3, "name": "Shop", "streetaddress": "1 A St, Dallas TX 75201, US",
            "city": "Plano", "loc_lat": "33.0", "loc_long": "-96.7",
        })
        assert location.city == "Plano"
        assert location.state == "TX"
        assert location.zip == "75201"
        assert location.country == "US"
        assert location.latitude == 33.0

    def test_fetch(self, locator_context, mock_response_factory):
        locator_context.session.get.return_value = mock_response_factory(200, json_data={
            "results": {"locations": [{"name": "Shop", "streetaddress": "1 A St, Dallas TX 75201, US"}]}
        })
        locations = StorepointStrategy().fetch("zz99", locator_context)
        assert locations[0].locator_source == "storepoint"
        assert "zz99" in locator_context.session.get.call_args[0][0]
