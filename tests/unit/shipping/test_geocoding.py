from unittest.mock import MagicMock

import pytest
import requests

from modules.shipping.calculator import Coordinates
from modules.shipping.exceptions import (
    GeocoderUnavailable,
    InvalidPostalCode,
    PostalCodeNotFound,
)
from modules.shipping.geocoding import (
    PostalAddress,
    ViaCepNominatimGeocoder,
    normalize_postal_code,
)
from shared.domain.exceptions import UpstreamTimeout

pytestmark = pytest.mark.unit


def _response(payload, status_code=200):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(str(status_code))
    return response


def _geocoder(session):
    return ViaCepNominatimGeocoder(
        postal_url="https://viacep.example/ws/",
        search_url="https://nominatim.example/search",
        user_agent="tests",
        timeout=2.0,
        session=session,
    )


class TestNormalizePostalCode:
    def test_strips_punctuation(self):
        assert normalize_postal_code("14010-000") == "14010000"

    @pytest.mark.parametrize("raw", ["", "1401000", "140100000", "abcdefgh"])
    def test_rejects_wrong_length(self, raw):
        with pytest.raises(InvalidPostalCode):
            normalize_postal_code(raw)


class TestLookup:
    def test_resolves_address(self):
        session = MagicMock()
        session.get.return_value = _response(
            {
                "logradouro": "Rua Amador Bueno",
                "bairro": "Centro",
                "localidade": "Ribeirão Preto",
                "uf": "sp",
            }
        )

        address = _geocoder(session).lookup("14010-000")

        assert address == PostalAddress(
            postal_code="14010000",
            street="Rua Amador Bueno",
            neighborhood="Centro",
            city="Ribeirão Preto",
            state="SP",
        )
        url = session.get.call_args.args[0]
        assert url == "https://viacep.example/ws/14010000/json/"
        assert session.get.call_args.kwargs["timeout"] == 2.0

    def test_unknown_postal_code(self):
        session = MagicMock()
        session.get.return_value = _response({"erro": True})
        with pytest.raises(PostalCodeNotFound):
            _geocoder(session).lookup("99999999")

    def test_timeout_surfaces_as_upstream_timeout(self):
        session = MagicMock()
        session.get.side_effect = requests.Timeout()
        with pytest.raises(UpstreamTimeout):
            _geocoder(session).lookup("14010000")

    def test_http_error_surfaces_as_unavailable(self):
        session = MagicMock()
        session.get.return_value = _response({}, status_code=502)
        with pytest.raises(GeocoderUnavailable):
            _geocoder(session).lookup("14010000")


class TestCoordinates:
    def test_street_search_first(self):
        session = MagicMock()
        session.get.return_value = _response([{"lat": "-21.17", "lon": "-47.81"}])
        address = PostalAddress("14010000", "Rua Amador Bueno", "Centro", "Ribeirão Preto", "SP")

        assert _geocoder(session).coordinates_for(address) == Coordinates(-21.17, -47.81)
        assert session.get.call_count == 1

    def test_falls_back_to_postal_code_search(self):
        session = MagicMock()
        session.get.side_effect = [
            _response([]),
            _response([{"lat": "-21.2", "lon": "-47.8"}]),
        ]
        address = PostalAddress("14010000", "Rua Sem Geo", "Centro", "Ribeirão Preto", "SP")

        assert _geocoder(session).coordinates_for(address) == Coordinates(-21.2, -47.8)
        assert session.get.call_args.kwargs["params"]["postalcode"] == "14010000"

    def test_nothing_found(self):
        session = MagicMock()
        session.get.return_value = _response([])
        address = PostalAddress("14010000", "", "", "Ribeirão Preto", "SP")

        with pytest.raises(PostalCodeNotFound):
            _geocoder(session).coordinates_for(address)

    def test_geocode_text_returns_none_for_garbage(self):
        session = MagicMock()
        session.get.return_value = _response([{"lat": "x"}])
        assert _geocoder(session).geocode_text("qualquer") is None
