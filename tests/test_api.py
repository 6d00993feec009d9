"""
Tests for the Flask app: JSON API, SPA fallback and error handling
"""
import pytest

from trefa import create_app
from tests.conftest import BrokenSession


pytestmark = pytest.mark.api


class TestHealth:

    def test_healthz(self, client):
        r = client.get("/healthz")
        assert r.status_code == 200
        assert r.get_data(as_text=True) == "ok"

    def test_api_health(self, client):
        assert client.get("/api/health").get_json() == {"status": "ok"}


class TestVehiclesApi:

    def test_list_vehicles(self, client, make_vehicle):
        make_vehicle(title="Kia Rio", marca="Kia", precio=180000)
        make_vehicle(title="Nissan Versa", marca="Nissan", precio=250000)
        make_vehicle(title="Vendido", ordenstatus="Vendido")

        data = client.get("/api/vehicles").get_json()
        assert data["totalCount"] == 2
        assert data["page"] == 1
        assert sorted(v["titulo"] for v in data["vehicles"]) == ["Kia Rio", "Nissan Versa"]

    def test_list_vehicles_with_filters(self, client, make_vehicle):
        make_vehicle(title="Kia Rio", marca="Kia", precio=180000)
        make_vehicle(title="Kia Forte", marca="Kia", precio=320000)
        make_vehicle(title="Nissan Versa", marca="Nissan", precio=250000)

        data = client.get("/api/vehicles?marca=Kia&maxPrice=200000").get_json()
        assert [v["titulo"] for v in data["vehicles"]] == ["Kia Rio"]
        assert data["totalCount"] == 1

    def test_bad_page_falls_back_to_first(self, client, make_vehicle):
        make_vehicle()
        data = client.get("/api/vehicles?page=abc").get_json()
        assert data["page"] == 1
        assert data["totalCount"] == 1

    def test_database_down_without_cache(self, tmp_path, static_dir):
        app = create_app({
            "TESTING": True,
            "SESSION_FACTORY": BrokenSession,
            "LOCAL_STORE_PATH": str(tmp_path / "store.json"),
            "STATIC_DIR": str(static_dir),
            "ACCESS_LOG": False,
        })
        r = app.test_client().get("/api/vehicles")
        assert r.status_code == 503
        assert "error" in r.get_json()

    def test_vehicle_detail(self, client, make_vehicle):
        make_vehicle(slug="kia-rio-2020", title="Kia Rio")
        r = client.get("/api/vehicles/kia-rio-2020")
        assert r.status_code == 200
        data = r.get_json()
        assert data["titulo"] == "Kia Rio"
        assert data["view_count"] == 1

    def test_vehicle_detail_not_found(self, client, db_session):
        r = client.get("/api/vehicles/no-existe")
        assert r.status_code == 404
        assert r.get_json() == {"error": "Vehicle not found"}

    def test_slugs(self, client, make_vehicle):
        make_vehicle(slug="uno")
        assert client.get("/api/vehicles/slugs").get_json() == [{"slug": "uno"}]

    def test_filter_options(self, client, make_vehicle):
        make_vehicle(marca="Kia")
        data = client.get("/api/filter-options").get_json()
        assert data["marcas"] == ["Kia"]
        assert data["sucursales"] == ["Monterrey"]

    def test_recently_viewed(self, client, make_vehicle):
        a = make_vehicle(slug="a")
        b = make_vehicle(slug="b")
        client.get("/api/vehicles/a")
        client.get("/api/vehicles/b")

        ids = [v["id"] for v in client.get("/api/recently-viewed").get_json()]
        assert ids == [b.id, a.id]

        ids = [v["id"] for v in client.get(f"/api/recently-viewed?exclude={b.id}").get_json()]
        assert ids == [a.id]

    def test_recently_viewed_is_per_visitor(self, app, client, make_vehicle):
        make_vehicle(slug="a")
        client.get("/api/vehicles/a")
        assert len(client.get("/api/recently-viewed").get_json()) == 1

        other = app.test_client()
        assert other.get("/api/recently-viewed").get_json() == []

    def test_unknown_api_route_is_json_404(self, client):
        r = client.get("/api/nope")
        assert r.status_code == 404
        assert r.get_json() == {"error": "Not found"}


class TestSpa:

    def test_index_is_served_for_client_routes(self, client):
        for path in ("/", "/autos", "/autos/kia-rio-2020"):
            r = client.get(path)
            assert r.status_code == 200
            assert "TREFA" in r.get_data(as_text=True)
            assert "max-age=0" in r.headers["Cache-Control"]

    def test_assets_are_cached_long(self, client):
        r = client.get("/assets/app.js")
        assert r.status_code == 200
        assert "max-age=31536000" in r.headers["Cache-Control"]

    def test_missing_build_is_404(self, tmp_path):
        app = create_app({
            "TESTING": True,
            "LOCAL_STORE_PATH": str(tmp_path / "store.json"),
            "STATIC_DIR": str(tmp_path / "missing"),
            "ACCESS_LOG": False,
        })
        assert app.test_client().get("/autos").status_code == 404

    def test_security_headers(self, client):
        r = client.get("/api/health")
        assert r.headers["X-Content-Type-Options"] == "nosniff"
        assert r.headers["X-Frame-Options"] == "SAMEORIGIN"


class TestErrors:

    def test_unhandled_exception_is_json_500(self, app):
        def boom():
            raise RuntimeError("kaboom")

        app.add_url_rule("/boom", "boom", boom)
        r = app.test_client().get("/boom")
        assert r.status_code == 500
        assert r.get_json() == {"error": "Internal Server Error"}
