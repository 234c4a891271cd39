"""Google Sheets store: sources, existing items, new items and run logs.

Talks to the Sheets v4 ``values`` REST API over httpx; the bearer token comes
from a service account loaded with google-auth.
"""

from __future__ import annotations

import base64
import binascii
import json
from typing import Any, Callable, Dict, Generator, Iterable, List, Optional, Sequence
from urllib.parse import quote

import httpx
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request as GoogleAuthRequest
from google.oauth2 import service_account

from opportunities.models.domain import CandidateRecord, LogLevel, SourceDescriptor
from opportunities.settings import ConfigError, Settings
from opportunities.utils.ids import format_timestamp, generate_id
from opportunities.utils.logging import get_logger

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]
USER_ENTERED = "USER_ENTERED"
LAST_SCRAPED_COLUMN = "G"

TokenProvider = Callable[[], str]


class SheetsError(Exception):
    """Read or write against the spreadsheet failed."""


class PersistError(SheetsError):
    """Appending scraped items failed."""


def load_service_account_credentials(encoded: str, scopes: Sequence[str] = SCOPES) -> service_account.Credentials:
    """Decode the base64 service-account JSON from GOOGLE_CREDENTIALS."""
    try:
        info = json.loads(base64.b64decode(encoded).decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ConfigError("GOOGLE_CREDENTIALS ต้องเป็น service account JSON ที่เข้ารหัส base64") from exc
    try:
        return service_account.Credentials.from_service_account_info(info, scopes=list(scopes))
    except (ValueError, KeyError) as exc:
        raise ConfigError(f"service account ไม่ถูกต้อง: {exc}") from exc


class ServiceAccountTokenProvider:
    """Returns a valid access token, refreshing the credentials when needed."""

    def __init__(self, credentials: service_account.Credentials) -> None:
        self._credentials = credentials

    def __call__(self) -> str:
        if not self._credentials.valid:
            self._credentials.refresh(GoogleAuthRequest())
        return str(self._credentials.token)


class BearerAuth(httpx.Auth):
    def __init__(self, token_provider: TokenProvider) -> None:
        self._token_provider = token_provider

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        request.headers["Authorization"] = f"Bearer {self._token_provider()}"
        yield request


def parse_source_row(row: Sequence[str]) -> SourceDescriptor:
    """Map a Sources row (A:H) onto a SourceDescriptor; short rows are padded."""
    cells = [str(cell) for cell in row] + [""] * (8 - len(row))
    return SourceDescriptor(
        source_id=cells[0],
        source_name=cells[1],
        source_type=cells[2],
        url=cells[3],
        scrape_selector=cells[4],
        is_active=cells[5].strip().upper() == "TRUE",
        last_scraped=cells[6],
        notes=cells[7],
    )


def record_to_row(record: CandidateRecord, *, item_id: str, scraped_at: str) -> List[str]:
    """Items tab layout (A:P). Blank columns are filled by downstream processing."""
    return [
        item_id,
        record.source_id,
        record.title_th,
        "",  # title_en
        record.description_th,
        "",  # description_en
        record.url,
        "pending",  # category
        record.deadline,
        record.grant_amount,
        "",  # suitability_score
        "",  # suitability_reason
        scraped_at,
        "FALSE",  # processed
        "FALSE",  # is_sent
        "",  # sent_at
    ]


class SheetsStore:
    """Spreadsheet-backed store for one run."""

    def __init__(
        self,
        settings: Settings,
        *,
        client: Optional[httpx.Client] = None,
        token_provider: Optional[TokenProvider] = None,
    ) -> None:
        self._settings = settings
        self._logger = get_logger(__name__)
        if client is None:
            provider = token_provider or ServiceAccountTokenProvider(
                load_service_account_credentials(settings.google_credentials.get_secret_value())
            )
            client = httpx.Client(
                auth=BearerAuth(provider),
                timeout=float(settings.sheets_timeout_seconds),
            )
        self._client = client

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "SheetsStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        self.close()

    # ------------------------------------------------------------------
    # reads
    # ------------------------------------------------------------------
    def list_active_sources(self) -> List[SourceDescriptor]:
        rows = self._get_values(f"{self._settings.sources_tab}!A:H")
        sources = [parse_source_row(row) for row in rows[1:] if row]
        active = [s for s in sources if s.is_active]
        self._logger.info("sheets.sources", extra={"total": len(sources), "active": len(active)})
        return active

    def list_existing_keys(self) -> set[str]:
        rows = self._get_values(f"{self._settings.items_tab}!G:G")
        urls = {str(row[0]) for row in rows[1:] if row and row[0]}
        self._logger.info("sheets.existing_items", extra={"count": len(urls)})
        return urls

    # ------------------------------------------------------------------
    # writes
    # ------------------------------------------------------------------
    def persist(self, records: Iterable[CandidateRecord]) -> int:
        items = list(records)
        if not items:
            return 0
        scraped_at = self._now()
        rows = [record_to_row(r, item_id=generate_id("ITM"), scraped_at=scraped_at) for r in items]
        try:
            data = self._append(f"{self._settings.items_tab}!A:P", rows)
        except SheetsError as exc:
            raise PersistError(f"บันทึก {len(rows)} รายการลง Google Sheets ไม่สำเร็จ: {exc}") from exc
        saved = int((data.get("updates") or {}).get("updatedRows") or len(rows))
        self._logger.info("sheets.persist", extra={"rows": len(rows), "saved": saved})
        return saved

    def touch_source_timestamp(self, source_id: str, timestamp: Optional[str] = None) -> bool:
        """Write last_scraped for ``source_id``; returns False when the source row is missing."""
        tab = self._settings.sources_tab
        ids = self._get_values(f"{tab}!A:A")
        row_number = next((i + 1 for i, row in enumerate(ids) if row and row[0] == source_id), None)
        if row_number is None:
            self._logger.warning("sheets.touch.unknown_source", extra={"source_id": source_id})
            return False
        self._request(
            "PUT",
            self._values_url(f"{tab}!{LAST_SCRAPED_COLUMN}{row_number}"),
            params={"valueInputOption": USER_ENTERED},
            json={"values": [[timestamp or self._now()]]},
        )
        self._logger.info("sheets.touch", extra={"source_id": source_id, "row": row_number})
        return True

    def append_log(self, actor: str, level: LogLevel | str, message: str, source_id: str = "") -> None:
        level_value = level.value if isinstance(level, LogLevel) else str(level)
        row = [generate_id("LOG"), self._now(), actor, source_id, level_value, message]
        self._append(f"{self._settings.logs_tab}!A:F", [row])
        self._logger.info("sheets.log", extra={"level": level_value, "log_message": message, "source_id": source_id})

    # ------------------------------------------------------------------
    # transport
    # ------------------------------------------------------------------
    def _now(self) -> str:
        return format_timestamp(self._settings.tzinfo)

    def _values_url(self, a1_range: str, suffix: str = "") -> str:
        base = self._settings.sheets_api_base.rstrip("/")
        return f"{base}/{self._settings.spreadsheet_id}/values/{quote(a1_range, safe='!:')}{suffix}"

    def _get_values(self, a1_range: str) -> List[List[Any]]:
        data = self._request("GET", self._values_url(a1_range))
        return list(data.get("values") or [])

    def _append(self, a1_range: str, rows: List[List[str]]) -> Dict[str, Any]:
        return self._request(
            "POST",
            self._values_url(a1_range, ":append"),
            params={"valueInputOption": USER_ENTERED, "insertDataOption": "INSERT_ROWS"},
            json={"values": rows},
        )

    def _request(self, method: str, url: str, **kwargs: Any) -> Dict[str, Any]:
        try:
            resp = self._client.request(method, url, **kwargs)
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise SheetsError(f"Google Sheets {method} ตอบกลับ {exc.response.status_code}") from exc
        except (httpx.HTTPError, GoogleAuthError) as exc:
            raise SheetsError(f"Google Sheets {method} ล้มเหลว: {exc}") from exc
        if not resp.content:
            return {}
        return resp.json()
