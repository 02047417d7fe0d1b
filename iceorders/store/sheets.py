# iceorders/store/sheets.py
from __future__ import annotations

import logging
import os
from typing import Any, Dict, Iterable, List, Sequence
from urllib.parse import quote

import requests
from google.auth import default as google_auth_default
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import AuthorizedSession
from google.oauth2 import service_account

from ..errors import StoreUnavailable
from .tables import Row, Table

logger = logging.getLogger("iceorders.sheets")

SHEETS_API = "https://sheets.googleapis.com/v4/spreadsheets"
SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]
LAST_COLUMN = "Z"


def _build_creds():
    key_path = os.environ.get("GOOGLE_APPLICATION_CREDENTIALS")
    if key_path and os.path.exists(key_path):
        return service_account.Credentials.from_service_account_file(key_path, scopes=SCOPES)
    creds, _ = google_auth_default(scopes=SCOPES)
    return creds


def _a1(title: str, cells: str) -> str:
    escaped = title.replace("'", "''")
    return quote(f"'{escaped}'!{cells}", safe="")


class SheetsBackend:
    """Thin client for the Sheets v4 REST API over a google-auth session."""

    def __init__(self, spreadsheet_id: str, session: requests.Session | None = None) -> None:
        if not spreadsheet_id:
            raise ValueError("SPREADSHEET_ID is not set")
        self.spreadsheet_id = spreadsheet_id
        self.session = session if session is not None else AuthorizedSession(_build_creds())

    def request(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        url = f"{SHEETS_API}/{self.spreadsheet_id}{path}"
        try:
            resp = self.session.request(method, url, **kwargs)
        except (requests.RequestException, GoogleAuthError) as e:
            raise StoreUnavailable(f"{method} {path}: {e}") from e

        if resp.status_code >= 400:
            raise StoreUnavailable(f"{method} {path}: HTTP {resp.status_code} {resp.text[:200]}")
        if not resp.content:
            return {}
        return resp.json()

    def table(self, title: str) -> "SheetsTable":
        return SheetsTable(self, title)

    def ensure_tables(self, headers: Dict[str, Sequence[Any]]) -> None:
        """Create missing tabs, then write and bold each header row."""
        meta = self.request("GET", "", params={"fields": "sheets.properties"})
        existing = {
            s["properties"]["title"]: s["properties"]["sheetId"]
            for s in meta.get("sheets", [])
        }

        missing = [t for t in headers if t not in existing]
        if missing:
            logger.info("Creating sheets: %s", ", ".join(missing))
            resp = self.request(
                "POST",
                ":batchUpdate",
                json={"requests": [{"addSheet": {"properties": {"title": t}}} for t in missing]},
            )
            for reply in resp.get("replies", []):
                props = (reply.get("addSheet") or {}).get("properties") or {}
                if props:
                    existing[props["title"]] = props["sheetId"]

        for title, header in headers.items():
            self.table(title).ensure_header(header)

        formats = [
            {
                "repeatCell": {
                    "range": {
                        "sheetId": existing[title],
                        "startRowIndex": 0,
                        "endRowIndex": 1,
                        "startColumnIndex": 0,
                        "endColumnIndex": len(header),
                    },
                    "cell": {
                        "userEnteredFormat": {
                            "backgroundColor": {"red": 0.8, "green": 0.8, "blue": 0.8},
                            "textFormat": {"bold": True},
                            "horizontalAlignment": "CENTER",
                        }
                    },
                    "fields": "userEnteredFormat(backgroundColor,textFormat,horizontalAlignment)",
                }
            }
            for title, header in headers.items()
            if title in existing
        ]
        if formats:
            self.request("POST", ":batchUpdate", json={"requests": formats})


class SheetsTable(Table):
    def __init__(self, backend: SheetsBackend, title: str) -> None:
        self.backend = backend
        self.title = title

    def read_rows(self) -> List[Row]:
        data = self.backend.request(
            "GET",
            f"/values/{_a1(self.title, f'A:{LAST_COLUMN}')}",
            params={"valueRenderOption": "UNFORMATTED_VALUE"},
        )
        rows = data.get("values") or []
        return [list(r) for r in rows[1:]]

    def append_rows(self, rows: Iterable[Sequence[Any]]) -> None:
        values = [list(r) for r in rows]
        if not values:
            return
        self.backend.request(
            "POST",
            f"/values/{_a1(self.title, f'A:{LAST_COLUMN}')}:append",
            params={"valueInputOption": "RAW", "insertDataOption": "INSERT_ROWS"},
            json={"values": values},
        )

    def update_row(self, index: int, values: Sequence[Any]) -> None:
        sheet_row = index + 2
        self.backend.request(
            "PUT",
            f"/values/{_a1(self.title, f'A{sheet_row}')}",
            params={"valueInputOption": "RAW"},
            json={"values": [list(values)]},
        )

    def clear_rows(self) -> None:
        self.backend.request("POST", f"/values/{_a1(self.title, f'A2:{LAST_COLUMN}')}:clear")

    def ensure_header(self, header: Sequence[Any]) -> None:
        self.backend.request(
            "PUT",
            f"/values/{_a1(self.title, 'A1')}",
            params={"valueInputOption": "RAW"},
            json={"values": [list(header)]},
        )
