from __future__ import annotations

import asyncio
import logging
import re
from typing import Any, Mapping, Sequence
from urllib.parse import quote

import aiohttp
import google.auth.transport.requests
from google.oauth2 import service_account

from seatbot.store.base import RowRef, StoreError, Table, TableStore

log = logging.getLogger(__name__)

SCOPES = ("https://www.googleapis.com/auth/spreadsheets",)

_UPDATED_ROW_RE = re.compile(r"![A-Z]+(\d+)")


class SheetsError(StoreError):
    pass


def col_letter(index: int) -> str:
    """0-based column index -> A1 column letters (0 -> A, 26 -> AA)."""
    if index < 0:
        raise ValueError("column index must be >= 0")
    out = ""
    n = index + 1
    while n:
        n, rem = divmod(n - 1, 26)
        out = chr(ord("A") + rem) + out
    return out


def _cell(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, (int, float, str, bool)):
        return value
    return str(value)


class GoogleSheetsTableStore(TableStore):
    """Google Sheets v4 backend.

    One worksheet per table, header row first. Row handles are 1-based sheet
    row numbers, so the first data row is 2. Rows are never deleted by this
    application; a manual delete in the sheet shifts handles and a later
    update lands on the wrong row.
    """

    def __init__(
        self,
        *,
        spreadsheet_id: str,
        credentials_path: str,
        base_url: str = "https://sheets.googleapis.com/v4/spreadsheets",
        timeout_seconds: int = 20,
    ) -> None:
        self._spreadsheet_id = spreadsheet_id
        self._base_url = base_url.rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._creds = service_account.Credentials.from_service_account_file(
            credentials_path, scopes=list(SCOPES)
        )
        self._session: aiohttp.ClientSession | None = None

    async def _token(self) -> str:
        if not self._creds.valid:
            # google-auth refresh is blocking
            await asyncio.to_thread(self._creds.refresh, google.auth.transport.requests.Request())
        return str(self._creds.token)

    async def _http(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    def _values_url(self, a1: str, suffix: str = "") -> str:
        return f"{self._base_url}/{self._spreadsheet_id}/values/{quote(a1, safe='')}{suffix}"

    async def _request(self, method: str, url: str, *, params: dict[str, str] | None = None, body: Any = None) -> dict[str, Any]:
        headers = {"Authorization": f"Bearer {await self._token()}"}
        session = await self._http()
        try:
            async with session.request(method, url, params=params, json=body, headers=headers) as resp:
                data = await _read_json_best_effort(resp)
                if resp.status >= 400:
                    raise SheetsError(f"Sheets {method} failed: HTTP {resp.status}: {data}")
        except aiohttp.ClientError as e:
            raise SheetsError(f"Sheets {method} failed: {e}") from e
        return data

    async def _read_range(self, a1: str) -> list[list[Any]]:
        data = await self._request("GET", self._values_url(a1), params={"majorDimension": "ROWS"})
        values = data.get("values") or []
        return [list(r) for r in values]

    async def _header_row(self, name: str) -> list[str]:
        rows = await self._read_range(f"{name}!1:1")
        headers = [str(h).strip() for h in (rows[0] if rows else [])]
        if not headers:
            raise SheetsError(f"Sheet {name} has no header row")
        return headers

    async def _sheet_titles(self) -> set[str]:
        data = await self._request(
            "GET",
            f"{self._base_url}/{self._spreadsheet_id}",
            params={"fields": "sheets.properties.title"},
        )
        return {
            str((s.get("properties") or {}).get("title") or "")
            for s in (data.get("sheets") or [])
        }

    async def ensure_table(self, name: str, headers: Sequence[str]) -> None:
        if name not in await self._sheet_titles():
            await self._request(
                "POST",
                f"{self._base_url}/{self._spreadsheet_id}:batchUpdate",
                body={"requests": [{"addSheet": {"properties": {"title": name}}}]},
            )
            log.info("sheets_tab_created name=%s", name)

        rows = await self._read_range(f"{name}!1:1")
        current = [str(h).strip() for h in (rows[0] if rows else [])]
        missing = [h for h in headers if h not in current]
        if not missing:
            return
        merged = current + missing
        await self._request(
            "PUT",
            self._values_url(f"{name}!A1:{col_letter(len(merged) - 1)}1"),
            params={"valueInputOption": "RAW"},
            body={"values": [merged]},
        )
        log.info("sheets_headers_extended name=%s added=%s", name, ",".join(missing))

    async def get_table(self, name: str) -> Table:
        rows = await self._read_range(name)
        if not rows:
            raise SheetsError(f"Sheet {name} has no header row")
        headers = [str(h).strip() for h in rows[0]]
        width = len(headers)
        body: list[list[Any]] = []
        refs: list[RowRef] = []
        for i, raw in enumerate(rows[1:]):
            body.append((raw + [""] * width)[:width])
            refs.append(RowRef(name, i + 2))
        return Table(name=name, headers=headers, rows=body, refs=refs)

    async def append_row(self, name: str, headers: Sequence[str], values: Mapping[str, Any]) -> RowRef:
        own = await self._header_row(name)
        row = [_cell(values.get(h, "")) for h in own]
        data = await self._request(
            "POST",
            self._values_url(f"{name}!A1", ":append"),
            params={"valueInputOption": "RAW", "insertDataOption": "INSERT_ROWS"},
            body={"values": [row]},
        )
        updated = str((data.get("updates") or {}).get("updatedRange") or "")
        m = _UPDATED_ROW_RE.search(updated)
        if not m:
            raise SheetsError(f"Sheets append: unexpected response: {data}")
        return RowRef(name, int(m.group(1)))

    async def update_row(
        self,
        name: str,
        ref: RowRef,
        headers: Sequence[str],
        updates: Mapping[str, Any],
    ) -> None:
        if ref.table != name or not isinstance(ref.key, int) or ref.key < 2:
            raise SheetsError(f"Stale row handle {ref!r} for {name}")
        own = await self._header_row(name)
        last = col_letter(len(own) - 1)
        a1 = f"{name}!A{ref.key}:{last}{ref.key}"

        current = await self._read_range(a1)
        row = (current[0] if current else []) + [""] * len(own)
        row = row[: len(own)]
        for i, h in enumerate(own):
            if h in updates:
                row[i] = _cell(updates[h])

        await self._request(
            "PUT",
            self._values_url(a1),
            params={"valueInputOption": "RAW"},
            body={"values": [row]},
        )


async def _read_json_best_effort(resp: aiohttp.ClientResponse) -> dict[str, Any]:
    try:
        data = await resp.json(content_type=None)
    except Exception:
        try:
            txt = await resp.text()
        except Exception:
            txt = ""
        return {"_raw": txt}
    return data if isinstance(data, dict) else {"_raw": data}
