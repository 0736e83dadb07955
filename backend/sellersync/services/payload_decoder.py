"""
Download and decode report documents.

Document URLs are pre-signed, so no auth header is sent. The decoder only
handles compression and text decoding; the caller picks JSON or TSV parsing.
"""

import gzip
import json
import logging
import zlib
from typing import Any, Optional
import httpx
from sellersync.config import get_settings
from sellersync.errors import DecodeError, SpApiError
from sellersync.schemas import ReportDocument

logger = logging.getLogger(__name__)

GZIP = "GZIP"


class PayloadDecoder:
    def __init__(self, http: Optional[httpx.AsyncClient] = None):
        self._http = http

    async def fetch(self, document: ReportDocument) -> bytes:
        """Download the document and return its decompressed bytes."""
        raw = await self.download(document.url)
        logger.info(
            f"Downloaded report document {document.report_document_id}: "
            f"{len(raw)} bytes, compression={document.compression_algorithm or 'none'}"
        )
        return self.decode(raw, document.compression_algorithm)

    async def fetch_text(self, document: ReportDocument) -> str:
        return self.to_text(await self.fetch(document))

    async def download(self, url: str) -> bytes:
        if self._http is not None:
            resp = await self._http.get(url)
        else:
            async with httpx.AsyncClient(timeout=get_settings().http_timeout_seconds) as client:
                resp = await client.get(url)
        if not resp.is_success:
            raise SpApiError(resp.status_code, resp.text[:500], "report document download")
        return resp.content

    @staticmethod
    def decode(raw: bytes, compression: Optional[str] = None) -> bytes:
        if (compression or "").upper() != GZIP:
            return raw
        try:
            return gzip.decompress(raw)
        except (OSError, EOFError, zlib.error) as e:
            raise DecodeError(f"Malformed gzip payload: {e}") from e

    @staticmethod
    def to_text(data: bytes) -> str:
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError(f"Report document is not valid UTF-8: {e}") from e

    @classmethod
    def parse_json(cls, data: bytes | str) -> Any:
        text = cls.to_text(data) if isinstance(data, bytes) else data
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise DecodeError(f"Malformed JSON payload: {e}") from e

    @staticmethod
    def parse_tsv(text: str) -> list[dict[str, str]]:
        """
        Parse a tab-separated report into header-keyed rows.
        Fewer than two non-blank lines (header + one row) means no rows.
        """
        lines = [line for line in text.splitlines() if line.strip()]
        if len(lines) < 2:
            return []

        headers = [h.strip() for h in lines[0].split("\t")]
        rows = []
        for line in lines[1:]:
            cols = line.split("\t")
            rows.append({
                h: (cols[idx].strip() if idx < len(cols) else "")
                for idx, h in enumerate(headers)
            })
        return rows
