"""
Tests for VehicleFilters parsing/state helpers and the inventory query builder
"""
from datetime import datetime, timezone

import pytest
from werkzeug.datastructures import MultiDict

from trefa.services.filters import VehicleFilters, build_vehicle_query


def _titles(db, filters, page=1, per_page=20):
    rows_stmt, count_stmt = build_vehicle_query(filters, page, per_page)
    rows = db.execute(rows_stmt).scalars().all()
    total = db.execute(count_stmt).scalar()
    return [r.title for r in rows], total


class TestVehicleFiltersArgs:

    @pytest.mark.unit
    def test_from_args_multidict(self):
        args = MultiDict([
            ("marca", "Nissan"), ("marca", "Kia,Mazda"),
            ("autoano", "2020"), ("autoano", "veinte"),
            ("minPrice", "150,000"), ("maxPrice", ""),
            ("maxEnganche", "80000"),
            ("hideSeparado", "true"),
            ("search", "  versa "),
            ("ubicacion", "Monterrey"),
            ("orderby", "price-asc"),
        ])
        f = VehicleFilters.from_args(args)
        assert f.marca == ["Nissan", "Kia", "Mazda"]
        assert f.autoano == [2020]
        assert f.min_price == 150000.0
        assert f.max_price is None
        assert f.max_enganche == 80000.0
        assert f.hide_separado is True
        assert f.search == "versa"
        assert f.ubicacion == ["Monterrey"]
        assert f.orderby == "price-asc"

    @pytest.mark.unit
    def test_from_args_plain_dict(self):
        f = VehicleFilters.from_args({"marca": ["Kia"], "promotion": "bono", "hideSeparado": "0"})
        assert f.marca == ["Kia"]
        assert f.promotion == ["bono"]
        assert f.hide_separado is False

    @pytest.mark.unit
    def test_to_dict_only_has_set_filters(self):
        f = VehicleFilters(marca=["Kia"], min_price=100.0)
        assert f.to_dict() == {"marca": ["Kia"], "min_price": 100.0}
        assert VehicleFilters().to_dict() == {}

    @pytest.mark.unit
    def test_cache_key_is_stable_and_page_aware(self):
        a = VehicleFilters(marca=["Kia"], search="rio")
        b = VehicleFilters(search="rio", marca=["Kia"])
        assert a.cache_key(1) == b.cache_key(1)
        assert a.cache_key(1) != a.cache_key(2)
        assert a.cache_key(1).startswith("vehicles_")


class TestFilterState:

    @pytest.mark.unit
    def test_merged(self):
        f = VehicleFilters(marca=["Kia"]).merged(search="rio", min_price=100.0)
        assert f.marca == ["Kia"] and f.search == "rio" and f.min_price == 100.0

    @pytest.mark.unit
    def test_without_list_value(self):
        f = VehicleFilters(marca=["Kia", "Mazda"])
        assert f.without("marca", "Kia").marca == ["Mazda"]
        assert f.without("marca", "Kia").without("marca", "Mazda").to_dict() == {}

    @pytest.mark.unit
    def test_without_query_string_year(self):
        f = VehicleFilters(autoano=[2020, 2021])
        assert f.without("autoano", "2020").autoano == [2021]
        assert f.without("autoano", 2021).autoano == [2020]

    @pytest.mark.unit
    def test_without_whole_filter(self):
        f = VehicleFilters(marca=["Kia", "Mazda"], search="rio", hide_separado=True)
        assert f.without("marca").marca == []
        assert f.without("search").search is None
        assert f.without("hide_separado").hide_separado is False

    @pytest.mark.unit
    def test_cleared(self):
        assert VehicleFilters(marca=["Kia"], search="x").cleared() == VehicleFilters()


class TestBuildVehicleQuery:

    @pytest.mark.integration
    def test_only_comprado_vehicles(self, db_session, make_vehicle):
        make_vehicle(title="Disponible")
        make_vehicle(title="Vendido", ordenstatus="Historico")
        titles, total = _titles(db_session, VehicleFilters())
        assert titles == ["Disponible"]
        assert total == 1

    @pytest.mark.integration
    def test_hide_separado(self, db_session, make_vehicle):
        make_vehicle(title="Libre", separado=False)
        make_vehicle(title="Sin dato", separado=None)
        make_vehicle(title="Apartado", separado=True)
        titles, total = _titles(db_session, VehicleFilters(hide_separado=True))
        assert sorted(titles) == ["Libre", "Sin dato"]
        assert total == 2

    @pytest.mark.integration
    def test_list_filters_and_branch_names(self, db_session, make_vehicle):
        make_vehicle(title="Kia MTY", marca="Kia", ubicacion="MTY", autoano=2021)
        make_vehicle(title="Kia GPE", marca="Kia", ubicacion="GPE", autoano=2019)
        make_vehicle(title="Mazda MTY", marca="Mazda", ubicacion="MTY", autoano=2021)

        titles, _ = _titles(db_session, VehicleFilters(marca=["Kia"], ubicacion=["Monterrey"]))
        assert titles == ["Kia MTY"]

        titles, _ = _titles(db_session, VehicleFilters(autoano=[2021]))
        assert sorted(titles) == ["Kia MTY", "Mazda MTY"]

    @pytest.mark.integration
    def test_branch_filter_matches_multi_branch_vehicles(self, db_session, make_vehicle):
        make_vehicle(title="Dos sucursales", ubicacion="MTY,GPE")
        make_vehicle(title="Con espacios", ubicacion="TMPS, gpe")
        make_vehicle(title="Solo Saltillo", ubicacion="COAH")
        make_vehicle(title="Prefijo parecido", ubicacion="MTYX")

        titles, total = _titles(db_session, VehicleFilters(ubicacion=["Monterrey"]))
        assert titles == ["Dos sucursales"]
        assert total == 1

        titles, _ = _titles(db_session, VehicleFilters(ubicacion=["Guadalupe"]))
        assert sorted(titles) == ["Con espacios", "Dos sucursales"]

        titles, _ = _titles(db_session, VehicleFilters(ubicacion=["Saltillo", "Reynosa"]))
        assert sorted(titles) == ["Con espacios", "Solo Saltillo"]

    @pytest.mark.integration
    def test_price_and_enganche_ranges(self, db_session, make_vehicle):
        make_vehicle(title="Barato", precio=150000, enganchemin=30000)
        make_vehicle(title="Medio", precio=250000, enganchemin=50000)
        make_vehicle(title="Caro", precio=450000, enganchemin=90000)

        titles, _ = _titles(db_session, VehicleFilters(min_price=200000, max_price=300000))
        assert titles == ["Medio"]

        titles, _ = _titles(db_session, VehicleFilters(enganchemin=40000, max_enganche=60000))
        assert titles == ["Medio"]

    @pytest.mark.integration
    def test_search_is_case_insensitive_over_title_marca_modelo(self, db_session, make_vehicle):
        make_vehicle(title="Sedan familiar", marca="Nissan", modelo="Versa")
        make_vehicle(title="SUV", marca="Kia", modelo="Sportage")
        make_vehicle(title="Hatchback VERSATIL", marca="Mazda", modelo="2")

        titles, total = _titles(db_session, VehicleFilters(search="versa"))
        assert sorted(titles) == ["Hatchback VERSATIL", "Sedan familiar"]
        assert total == 2

    @pytest.mark.integration
    def test_promotion_overlap(self, db_session, make_vehicle):
        make_vehicle(title="Con bono", promociones=["bono", "tasa-cero"])
        make_vehicle(title="Con tasa", promociones=["tasa-cero"])
        make_vehicle(title="Sin promo", promociones=[])

        titles, _ = _titles(db_session, VehicleFilters(promotion=["bono"]))
        assert titles == ["Con bono"]

        titles, _ = _titles(db_session, VehicleFilters(promotion=["bono", "tasa-cero"]))
        assert sorted(titles) == ["Con bono", "Con tasa"]

    @pytest.mark.integration
    def test_ordering(self, db_session, make_vehicle):
        make_vehicle(title="A", precio=300000, updated_at=datetime(2025, 1, 1, tzinfo=timezone.utc))
        make_vehicle(title="B", precio=100000, updated_at=datetime(2025, 3, 1, tzinfo=timezone.utc))
        make_vehicle(title="C", precio=200000, updated_at=datetime(2025, 2, 1, tzinfo=timezone.utc))

        assert _titles(db_session, VehicleFilters())[0] == ["B", "C", "A"]
        assert _titles(db_session, VehicleFilters(orderby="price-asc"))[0] == ["B", "C", "A"]
        assert _titles(db_session, VehicleFilters(orderby="price-desc"))[0] == ["A", "C", "B"]
        # unknown column -> default ordering
        assert _titles(db_session, VehicleFilters(orderby="color-asc"))[0] == ["B", "C", "A"]

    @pytest.mark.integration
    def test_pagination_keeps_total(self, db_session, make_vehicle):
        for i in range(5):
            make_vehicle(title=f"V{i}", precio=100000 + i)

        titles, total = _titles(db_session, VehicleFilters(orderby="price-asc"), page=2, per_page=2)
        assert titles == ["V2", "V3"]
        assert total == 5

        titles, _ = _titles(db_session, VehicleFilters(orderby="price-asc"), page=0, per_page=2)
        assert titles == ["V0", "V1"]
