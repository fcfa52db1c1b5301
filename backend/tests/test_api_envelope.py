import json

from docpanel.api.envelope import docpanel_error_envelope, page_meta, paged_envelope, success_envelope
from docpanel.core.correlation import bind_request_context, clear_request_context
from docpanel.core.errors import UnarchiveConflict, ValidationFailed


def _body(response) -> dict:
    return json.loads(response.body.decode("utf-8"))


def test_entry_list_page_carries_items_and_paging() -> None:
    result = {"page": 1, "perPage": 2, "totalItems": 3, "totalPages": 2, "items": [{"id": "a"}, {"id": "b"}]}
    body = _body(paged_envelope(result))
    assert body["ok"] is True
    assert body["error"] is None
    assert body["data"] == [{"id": "a"}, {"id": "b"}]
    assert body["meta"]["total_items"] == 3
    assert body["meta"]["total_pages"] == 2


def test_unarchive_conflict_renders_409_with_request_ids() -> None:
    bind_request_context("req_support01", "corr_chain01")
    try:
        response = docpanel_error_envelope(UnarchiveConflict())
    finally:
        clear_request_context()
    body = _body(response)
    assert response.status_code == 409
    assert body["ok"] is False
    assert body["data"] is None
    assert body["error"]["code"] == "unarchive_conflict"
    assert body["error"]["message"] == "An entry with the original ID already exists. Cannot unarchive."
    assert body["meta"]["request_id"] == "req_support01"
    assert body["meta"]["correlation_id"] == "corr_chain01"


def test_empty_page_and_missing_context_stay_well_formed() -> None:
    body = _body(success_envelope(None))
    assert body["meta"]["request_id"] is None
    assert _body(paged_envelope({"items": None}))["data"] == []


def test_validation_error_carries_fields_and_submission() -> None:
    exc = ValidationFailed({"title": "Title is required."}, submitted={"title": ""})
    response = docpanel_error_envelope(exc)
    body = _body(response)
    assert response.status_code == 400
    assert body["error"]["code"] == "validation_failed"
    assert body["error"]["message"] == "Title is required."
    assert body["error"]["details"]["fields"] == {"title": "Title is required."}


def test_page_meta_maps_store_paging() -> None:
    meta = page_meta({"page": 2, "perPage": 10, "totalItems": 31, "totalPages": 4})
    assert meta == {"page": 2, "per_page": 10, "total_items": 31, "total_pages": 4}
