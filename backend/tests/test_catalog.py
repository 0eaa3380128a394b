"""
Catalog assembly tests.
"""

import json

import pytest
from fastapi.testclient import TestClient

from catalog import CatalogAssembler, CatalogSettings, InMemoryRowSource, JsonFileRowSource, RowSourceError
from link_resolver.providers.imgur import IMGUR_API_BASE
from main import create_app


def make_row(number, photo=""):
    return {
        "Город": "Москва",
        "Поставщик": "ООО Контейнер",
        "Тип": "40HC",
        "Номер": number,
        "Фото": photo,
        "Терминал": "Ворсино",
        "Цена": "150000",
    }


ROWS = [make_row(f"MSKU{n:07d}", photo=f"https://site.example/photos/{n}.jpg") for n in range(23)]


@pytest.fixture
def assembler(service):
    return CatalogAssembler(InMemoryRowSource(ROWS), service)


class TestPagination:

    @pytest.mark.asyncio
    async def test_first_page(self, assembler):
        payload = await assembler.page(page=1, limit=10)

        assert payload["success"] is True
        assert len(payload["data"]) == 10
        assert payload["pagination"] == {
            "page": 1, "limit": 10, "total": 23, "totalPages": 3, "hasNextPage": True,
        }

    @pytest.mark.asyncio
    async def test_last_page(self, assembler):
        payload = await assembler.page(page=3, limit=10)

        assert [item["number"] for item in payload["data"]] == ["MSKU0000020", "MSKU0000021", "MSKU0000022"]
        assert payload["pagination"]["hasNextPage"] is False

    @pytest.mark.asyncio
    async def test_page_past_the_end(self, assembler):
        payload = await assembler.page(page=9, limit=10)
        assert payload["data"] == []
        assert payload["pagination"]["total"] == 23

    @pytest.mark.asyncio
    async def test_default_and_capped_limit(self, assembler):
        assert (await assembler.page())["pagination"]["limit"] == 10
        assert (await assembler.page(limit=1000))["pagination"]["limit"] == 100

    @pytest.mark.asyncio
    async def test_empty_catalog(self, service):
        payload = await CatalogAssembler(InMemoryRowSource([]), service).page()
        assert payload["pagination"]["totalPages"] == 0
        assert payload["pagination"]["hasNextPage"] is False


class TestItems:

    @pytest.mark.asyncio
    async def test_fields_are_mapped(self, assembler):
        item = (await assembler.page(limit=1))["data"][0]
        assert item == {
            "city": "Москва",
            "supplier": "ООО Контейнер",
            "type": "40HC",
            "number": "MSKU0000000",
            "terminal": "Ворсино",
            "price": "150000",
            "photo": "https://site.example/photos/0.jpg",
        }

    @pytest.mark.asyncio
    async def test_blank_photo_gets_placeholder(self, service, upstream):
        assembler = CatalogAssembler(InMemoryRowSource([make_row("A1"), make_row("A2", photo="  ")]), service)

        payload = await assembler.page()

        assert [item["photo"] for item in payload["data"]] == ["/placeholder.jpg", "/placeholder.jpg"]
        assert upstream.calls == []

    @pytest.mark.asyncio
    async def test_provider_photos_are_resolved(self, service, upstream):
        upstream.json(f"{IMGUR_API_BASE}/album/AbC12de/images", {"data": [
            {"type": "image/jpeg", "link": "https://i.imgur.com/p1.jpg"},
        ]})
        rows = [make_row("A1", photo="https://imgur.com/a/AbC12de"), make_row("A2", photo="https://imgur.com/a/ZzZ99zz")]

        payload = await CatalogAssembler(InMemoryRowSource(rows), service).page()

        assert [item["photo"] for item in payload["data"]] == ["https://i.imgur.com/p1.jpg", "/placeholder.jpg"]

    @pytest.mark.asyncio
    async def test_custom_photo_column(self, service):
        settings = CatalogSettings(photo_column="Photo")
        rows = [{"Photo": "https://site.example/a.png", "Номер": "X1"}]

        item = (await CatalogAssembler(InMemoryRowSource(rows), service, settings).page())["data"][0]

        assert item["photo"] == "https://site.example/a.png"
        assert item["city"] == ""


class TestJsonFileRowSource:

    @pytest.mark.asyncio
    async def test_reads_rows(self, tmp_path):
        path = tmp_path / "rows.json"
        path.write_text(json.dumps([make_row("A1"), make_row("A2"), {"Номер": None}]), encoding="utf-8")

        rows, total = await JsonFileRowSource(path).fetch_rows(0, 2)

        assert total == 3
        assert [r["Номер"] for r in rows] == ["A1", "A2"]

    @pytest.mark.asyncio
    async def test_null_cells_become_empty(self, tmp_path):
        path = tmp_path / "rows.json"
        path.write_text(json.dumps([{"Номер": None}]), encoding="utf-8")

        rows, _ = await JsonFileRowSource(path).fetch_rows(0, 10)

        assert rows == [{"Номер": ""}]

    @pytest.mark.asyncio
    async def test_missing_file(self, tmp_path):
        with pytest.raises(RowSourceError):
            await JsonFileRowSource(tmp_path / "absent.json").fetch_rows(0, 10)

    @pytest.mark.asyncio
    async def test_not_a_list(self, tmp_path):
        path = tmp_path / "rows.json"
        path.write_text('{"rows": []}', encoding="utf-8")
        with pytest.raises(RowSourceError):
            await JsonFileRowSource(path).fetch_rows(0, 10)


class BrokenRowSource:
    async def fetch_rows(self, offset, limit):
        raise RowSourceError("spreadsheet unavailable")


class TestContainersEndpoint:

    def make_client(self, settings, upstream, clock, rows):
        app = create_app(settings, row_source=rows, transport=upstream.transport(), sleep=clock.sleep)
        return TestClient(app)

    def test_lists_containers(self, settings, upstream, clock):
        with self.make_client(settings, upstream, clock, InMemoryRowSource(ROWS)) as client:
            response = client.get("/api/containers", params={"page": 2, "limit": 5})

        assert response.status_code == 200
        body = response.json()
        assert [item["number"] for item in body["data"]] == [f"MSKU{n:07d}" for n in range(5, 10)]
        assert body["pagination"]["totalPages"] == 5

    def test_invalid_page(self, settings, upstream, clock):
        with self.make_client(settings, upstream, clock, InMemoryRowSource(ROWS)) as client:
            assert client.get("/api/containers", params={"page": 0}).status_code == 422

    def test_row_source_failure(self, settings, upstream, clock):
        with self.make_client(settings, upstream, clock, BrokenRowSource()) as client:
            response = client.get("/api/containers")

        assert response.status_code == 500
        assert response.json() == {"success": False, "error": "spreadsheet unavailable"}
