"""
Google Sheets Remote Store

DESIGN DECISION: Google Sheets stands in for the two remote tables:
1. `Vouchers` - one row per uploaded document
2. `DashboardImpact` - a single row (id=1) of dashboard aggregates

The remote store is a best-effort mirror. The local cache stays the
system of record; every failure here surfaces as StorageError and the
caller logs it and moves on.

TRADEOFFS:
- Sheets cells cap at 50,000 characters, so large inline files are
  not mirrored (the voucher itself still is)
- No transactions (the impact row is rewritten cell by cell)
"""

import json
from datetime import datetime, timezone
from typing import Optional

import gspread
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ledgerflow.config import get_settings
from ledgerflow.models.records import (
    DashboardImpact,
    RemoteVoucherRow,
    VoucherStatus,
)
from ledgerflow.services.storage.interface import (
    ConnectionError,
    NotFoundError,
    RemoteStoreInterface,
    StorageError,
)


# Column mappings for the Vouchers sheet
VOUCHER_COLUMNS = [
    "voucher_id",
    "type",
    "party",
    "amount",
    "summary_json",
    "status",
    "file_name",
    "file_data",
    "created_at",
]

# Column mappings for the DashboardImpact sheet
IMPACT_COLUMNS = [
    "id",
    "cash_balance",
    "bank_balance",
    "receivables",
    "payables",
    "gst_input",
    "gst_output",
    "updated_at",
]

IMPACT_FIELDS = IMPACT_COLUMNS[1:-1]
IMPACT_ROW_ID = "1"
SHEETS_CELL_LIMIT = 50_000
STATUS_COLUMN = VOUCHER_COLUMNS.index("status") + 1


def as_utc(value: datetime) -> datetime:
    """Aware timestamps are converted to UTC; naive ones are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """Authenticate with the service account credentials."""
        if self._client is None:
            try:
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=[
                        "https://www.googleapis.com/auth/spreadsheets",
                        "https://www.googleapis.com/auth/drive",
                    ],
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _worksheet(self, title: str, columns: list[str], rows: int) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            return spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
            return sheet

    def get_vouchers_sheet(self) -> gspread.Worksheet:
        """Get or create the Vouchers worksheet."""
        return self._worksheet(
            self._settings.vouchers_sheet_name, VOUCHER_COLUMNS, rows=1000
        )

    def get_impact_sheet(self) -> gspread.Worksheet:
        """Get or create the DashboardImpact worksheet."""
        return self._worksheet(
            self._settings.impact_sheet_name, IMPACT_COLUMNS, rows=10
        )


class GoogleSheetsRemoteStore(RemoteStoreInterface):
    """
    Google Sheets implementation of the remote store.

    Summaries are JSON-serialized into a single cell.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _voucher_to_row(self, row: RemoteVoucherRow) -> list:
        file_data = row.file_data or ""
        if len(file_data) > SHEETS_CELL_LIMIT:
            file_data = ""

        return [
            row.voucher_id,
            row.type,
            row.party or "",
            str(row.amount),
            json.dumps(row.summary, default=str),
            row.status.value,
            row.file_name or "",
            file_data,
            row.created_at.isoformat(),
        ]

    def _row_to_voucher(self, values: list) -> RemoteVoucherRow:
        def safe_get(index: int, default: str = "") -> str:
            try:
                return values[index] if values[index] else default
            except IndexError:
                return default

        summary_json = safe_get(4)
        created_at = safe_get(8)

        return RemoteVoucherRow(
            voucher_id=safe_get(0),
            type=safe_get(1, "Manual"),
            party=safe_get(2) or None,
            amount=safe_get(3, "0"),
            summary=json.loads(summary_json) if summary_json else {},
            status=VoucherStatus(safe_get(5, VoucherStatus.PENDING_REVIEW.value)),
            file_name=safe_get(6) or None,
            file_data=safe_get(7) or None,
            created_at=datetime.fromisoformat(created_at) if created_at else datetime.min,
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def insert_voucher(self, row: RemoteVoucherRow) -> bool:
        try:
            sheet = self._client.get_vouchers_sheet()
            sheet.append_row(self._voucher_to_row(row), value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to insert voucher: {e}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_not_exception_type(NotFoundError),
        reraise=True,
    )
    async def update_voucher_status(
        self,
        voucher_id: str,
        status: VoucherStatus,
    ) -> bool:
        try:
            sheet = self._client.get_vouchers_sheet()
            all_rows = sheet.get_all_values()

            # Row 1 is the header; duplicate ids all receive the status
            updated = False
            for idx, values in enumerate(all_rows[1:], start=2):
                if values and values[0] == voucher_id:
                    sheet.update_cell(idx, STATUS_COLUMN, status.value)
                    updated = True

            if not updated:
                raise NotFoundError(f"Voucher not found: {voucher_id}")
            return True
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update voucher status: {e}")

    async def list_vouchers(self) -> list[RemoteVoucherRow]:
        try:
            sheet = self._client.get_vouchers_sheet()
            all_rows = sheet.get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to list vouchers: {e}")

        rows = []
        for values in all_rows:
            if not values or not values[0]:
                continue
            try:
                rows.append(self._row_to_voucher(values))
            except Exception:
                continue  # Skip malformed rows

        rows.sort(key=lambda r: as_utc(r.created_at), reverse=True)
        return rows

    async def delete_all_vouchers(self) -> int:
        try:
            sheet = self._client.get_vouchers_sheet()
            count = len(sheet.get_all_values()) - 1
            if count > 0:
                sheet.delete_rows(2, count + 1)
            return max(count, 0)
        except Exception as e:
            raise StorageError(f"Failed to delete vouchers: {e}")

    async def get_dashboard_impact(self) -> Optional[DashboardImpact]:
        try:
            sheet = self._client.get_impact_sheet()
            all_rows = sheet.get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to read dashboard impact: {e}")

        for values in all_rows:
            if values and values[0] == IMPACT_ROW_ID:
                return DashboardImpact(**dict(zip(IMPACT_FIELDS, values[1:])))
        return None

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def upsert_dashboard_impact(self, impact: DashboardImpact) -> bool:
        values = (
            [IMPACT_ROW_ID]
            + [str(getattr(impact, field)) for field in IMPACT_FIELDS]
            + [datetime.now(timezone.utc).isoformat()]
        )
        try:
            sheet = self._client.get_impact_sheet()
            all_rows = sheet.get_all_values()

            for idx, existing in enumerate(all_rows[1:], start=2):
                if existing and existing[0] == IMPACT_ROW_ID:
                    for col_idx, value in enumerate(values, start=1):
                        sheet.update_cell(idx, col_idx, value)
                    return True

            sheet.append_row(values, value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to write dashboard impact: {e}")
