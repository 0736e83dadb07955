"""
Tests for report document download and decoding.
"""

import gzip
import json
from datetime import date
import httpx
import pytest

from conftest import gzip_json, mock_http
from sellersync.errors import DecodeError, SpApiError
from sellersync.schemas import ReportDocument
from sellersync.services.normalizers import normalize_sales_traffic
from sellersync.services.payload_decoder import PayloadDecoder

DAY = date(2025, 3, 1)
PAYLOAD = {"salesAndTrafficByAsin": [{"childAsin": "B000TEST01"}]}


def test_gzip_and_plain_normalize_identically():
    plain = json.dumps(PAYLOAD).encode()
    from_gzip = PayloadDecoder.parse_json(PayloadDecoder.decode(gzip_json(PAYLOAD), "GZIP"))
    from_plain = PayloadDecoder.parse_json(PayloadDecoder.decode(plain, None))

    assert from_gzip == from_plain == PAYLOAD
    assert normalize_sales_traffic(from_gzip, DAY) == normalize_sales_traffic(from_plain, DAY)


def test_malformed_gzip_raises_decode_error():
    with pytest.raises(DecodeError, match="gzip"):
        PayloadDecoder.decode(b"definitely not gzip", "GZIP")


def test_truncated_gzip_raises_decode_error():
    truncated = gzip.compress(b'{"a": 1}' * 100)[:20]
    with pytest.raises(DecodeError):
        PayloadDecoder.decode(truncated, "GZIP")


def test_malformed_json_raises_decode_error():
    with pytest.raises(DecodeError, match="JSON"):
        PayloadDecoder.parse_json(b'{"salesAndTrafficByAsin": [')


def test_invalid_utf8_raises_decode_error():
    with pytest.raises(DecodeError, match="UTF-8"):
        PayloadDecoder.to_text(b"\xff\xfe\xfa")


def test_tsv_is_keyed_by_header():
    text = "sku\tasin\tafn-total-quantity\nSKU-1\tB01\t12\nSKU-2\tB02\t0\n"
    assert PayloadDecoder.parse_tsv(text) == [
        {"sku": "SKU-1", "asin": "B01", "afn-total-quantity": "12"},
        {"sku": "SKU-2", "asin": "B02", "afn-total-quantity": "0"},
    ]


def test_tsv_short_rows_are_padded_and_cells_trimmed():
    text = "sku\tafn-total-quantity\tcondition\n SKU-1 \t 7\n"
    assert PayloadDecoder.parse_tsv(text) == [
        {"sku": "SKU-1", "afn-total-quantity": "7", "condition": ""},
    ]


@pytest.mark.parametrize("text", ["", "\n\n", "sku\tafn-total-quantity\n", "sku\tafn-total-quantity\n  \n"])
def test_tsv_without_data_rows_is_empty(text):
    assert PayloadDecoder.parse_tsv(text) == []


@pytest.mark.anyio
async def test_fetch_downloads_without_auth_and_decompresses():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, content=gzip_json(PAYLOAD))

    decoder = PayloadDecoder(http=mock_http(handler))
    document = ReportDocument(
        report_document_id="D1", url="https://tortuga-prod-eu.s3.amazonaws.com/D1",
        compression_algorithm="GZIP",
    )

    data = await decoder.fetch(document)

    assert PayloadDecoder.parse_json(data) == PAYLOAD
    assert "x-amz-access-token" not in seen[0].headers


@pytest.mark.anyio
async def test_failed_download_raises():
    decoder = PayloadDecoder(http=mock_http(lambda request: httpx.Response(403, text="Request has expired")))
    document = ReportDocument(report_document_id="D1", url="https://tortuga-prod-eu.s3.amazonaws.com/D1")

    with pytest.raises(SpApiError, match="403"):
        await decoder.fetch(document)
