import json

import pytest
import requests

from fedresurs_leasing.enrichment import company_fields, run_enrichment
from fedresurs_leasing.errors import RegistryDecodeError
from fedresurs_leasing.models import ContractRow, DetailedContract


class _FakeDetailClient:
    def __init__(self, details):
        self.details = dict(details)
        self.calls = []

    def fetch_detail(self, guid):
        self.calls.append(guid)
        item = self.details.get(guid)
        if isinstance(item, Exception):
            raise item
        return item


def _detail(fixtures_dir, name) -> DetailedContract:
    data = json.loads((fixtures_dir / name).read_text(encoding="utf-8"))
    return DetailedContract.model_validate(data)


def _seed(store, *guids):
    for i, guid in enumerate(guids):
        store.insert_contract(
            ContractRow(
                guid=guid,
                type="Прекращение договора финансовой аренды (лизинга)",
                date=f"2023-06-02 1{i}:00:00",
                lessor="Дельта",
                lessee="Эпсилон",
            )
        )


def test_enrichment_updates_and_flags_row(store, fixtures_dir):
    _seed(store, "A")
    client = _FakeDetailClient({"A": _detail(fixtures_dir, "detail_stop.json")})

    res = run_enrichment(store=store, client=client)

    assert res.ok
    assert res.counts["updated"] == 1
    row = store.get_contract("A")
    assert row.enriched is True
    assert row.stop_reason == "Исполнение обязательств"
    assert row.user_comment.startswith("Договор прекращен")
    assert row.lessor == "АО Дельта"
    assert row.lessee == "Эпсилон"
    assert row.ogrn == "1197700000004"
    assert row.inn == "7700000004"
    assert json.loads(row.item_raw)["stopReason"] == "Исполнение обязательств"


def test_enrichment_leaves_row_when_comment_and_stop_reason_empty(store, fixtures_dir):
    _seed(store, "A")
    client = _FakeDetailClient({"A": _detail(fixtures_dir, "detail_empty.json")})

    res = run_enrichment(store=store, client=client)

    assert res.counts["pending"] == 1
    row = store.get_contract("A")
    assert row.enriched is False
    assert row.item_raw == "{}"
    assert store.list_unenriched_guids() == ["A"]


def test_enrichment_only_stop_reason_is_enough(store):
    _seed(store, "A")
    detail = DetailedContract.model_validate({"content": {"stopReason": "Расторжение", "text": ""}})
    client = _FakeDetailClient({"A": detail})

    run_enrichment(store=store, client=client)

    row = store.get_contract("A")
    assert row.enriched is True
    assert row.stop_reason == "Расторжение"
    # No company lists -> extracted values stay.
    assert row.lessor == "Дельта"


def test_enrichment_not_ready_is_skipped(store):
    _seed(store, "A", "B")
    client = _FakeDetailClient({"A": None, "B": DetailedContract.model_validate({"content": {"text": "ok"}})})

    res = run_enrichment(store=store, client=client)

    assert res.ok
    assert res.counts["not_ready"] == 1
    assert res.counts["updated"] == 1
    assert store.list_unenriched_guids() == ["A"]


def test_enrichment_skips_already_enriched_rows(store):
    _seed(store, "A")
    detail = DetailedContract.model_validate({"content": {"text": "ok"}})
    client = _FakeDetailClient({"A": detail})
    run_enrichment(store=store, client=client)
    run_enrichment(store=store, client=client)

    assert client.calls == ["A"]


def test_enrichment_records_failures_and_continues(store):
    _seed(store, "A", "B")
    client = _FakeDetailClient(
        {
            "A": RegistryDecodeError("bad json"),
            "B": DetailedContract.model_validate({"content": {"text": "ok"}}),
        }
    )

    res = run_enrichment(store=store, client=client)

    assert res.ok
    assert res.status == "partial"
    assert res.counts["failed"] == 1
    assert res.counts["updated"] == 1
    assert res.errors and res.errors[0].startswith("A:")


def test_enrichment_fail_fast_stops(store):
    _seed(store, "A", "B")
    client = _FakeDetailClient({"A": requests.Timeout("slow"), "B": None})

    res = run_enrichment(store=store, client=client, fail_fast=True)

    assert res.ok is False
    assert res.status == "failed"
    assert client.calls == ["A"]


def test_enrichment_limit(store):
    _seed(store, "A", "B", "C")
    client = _FakeDetailClient({})

    res = run_enrichment(store=store, client=client, limit=2)

    assert res.counts["candidates"] == 2
    assert client.calls == ["A", "B"]


@pytest.mark.parametrize(
    "content, expected",
    [
        ({}, {"lessor": None, "lessee": None, "ogrn": None, "inn": None}),
        ({"lessors": [], "lessees": []}, {"lessor": None, "lessee": None, "ogrn": None, "inn": None}),
        (
            {"lessees": [{"name": "ООО Бета", "inn": "7700000001", "ogrn": ""}]},
            {"lessor": None, "lessee": "Бета", "ogrn": None, "inn": "7700000001"},
        ),
    ],
)
def test_company_fields_handles_missing_and_empty_lists(content, expected):
    detail = DetailedContract.model_validate({"content": content})
    assert company_fields(detail.content) == expected
