"""
Chart-of-accounts loader.
Reads account lists from CSV or Excel exports into Account records.
"""

from io import BytesIO, StringIO
from pathlib import Path
from typing import Optional
import logging

import pandas as pd

from .base import RawInput, decode_input
from .statement_csv_parser import detect_delimiter, find_column
from ..config import ReconConfig
from ..models.validation import Account
from ..utils.exceptions import ParseError

logger = logging.getLogger(__name__)

# Resolved in this order; a column claimed by one role is not offered to later ones
CHART_COLUMN_CANDIDATES: dict[str, list[str]] = {
    "code": ["codigo", "conta", "account_code", "cod", "code"],
    "name": ["descricao", "nome", "account_name", "name", "desc"],
    "level": ["nivel", "level", "niv"],
    "parent": ["pai", "parent", "parent_code", "conta_pai"],
    "type": ["tipo", "account_type", "type"],
    "nature": ["natureza", "nature", "natureza_conta"],
}

XLSX_MAGIC = b"PK\x03\x04"


class ChartOfAccountsLoader:
    """Loader for chart-of-accounts files (CSV with ``;`` or ``,``, or XLSX)."""

    def __init__(self, config: Optional[ReconConfig] = None):
        self.config = config or ReconConfig()

    def load_file(self, file_path: Path, source: str) -> list[Account]:
        """
        Load a chart of accounts from disk.

        Args:
            file_path: CSV or XLSX file
            source: Chart identifier the accounts are scoped to

        Returns:
            List of accounts
        """
        logger.info(f"Loading chart of accounts from: {file_path}")
        return self.load(file_path.read_bytes(), source, source_name=file_path.name)

    def load(
        self, raw_input: RawInput, source: str, source_name: Optional[str] = None
    ) -> list[Account]:
        """
        Load a chart of accounts from raw file contents.

        Args:
            raw_input: File contents
            source: Chart identifier the accounts are scoped to
            source_name: File name, used for format detection and logging

        Returns:
            List of accounts; rows without a code are skipped

        Raises:
            ParseError: If the file cannot be read or has no code column
        """
        try:
            df = self._read_frame(raw_input, source_name)
        except ParseError:
            raise
        except Exception as e:
            logger.error(f"Failed to read chart of accounts: {e}")
            raise ParseError(f"Failed to read chart of accounts: {e}") from e

        headers = [str(column) for column in df.columns]
        columns: dict[str, Optional[str]] = {}
        for role, candidates in CHART_COLUMN_CANDIDATES.items():
            available = [header for header in headers if header not in columns.values()]
            columns[role] = find_column(available, candidates)

        if columns["code"] is None:
            raise ParseError(f"Account code column not found (headers: {headers})")

        accounts = []
        for _, row in df.iterrows():
            account = self._row_to_account(row, columns, source)
            if account is not None:
                accounts.append(account)

        logger.info(f"Loaded {len(accounts)} accounts for chart '{source}'")
        return accounts

    def _read_frame(self, raw_input: RawInput, source_name: Optional[str]) -> pd.DataFrame:
        is_excel = (
            isinstance(raw_input, bytes) and raw_input.startswith(XLSX_MAGIC)
        ) or (source_name or "").lower().endswith((".xlsx", ".xlsm"))

        if is_excel:
            if isinstance(raw_input, str):
                raise ParseError("Excel chart of accounts must be provided as bytes")
            return pd.read_excel(BytesIO(raw_input), dtype=str, engine="openpyxl").fillna("")

        text = decode_input(raw_input, self.config)
        header_line = next((line for line in text.splitlines() if line.strip()), "")
        if not header_line:
            raise ParseError("Chart of accounts file is empty")

        return pd.read_csv(
            StringIO(text),
            sep=detect_delimiter(header_line),
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
        )

    def _row_to_account(
        self, row: pd.Series, columns: dict[str, Optional[str]], source: str
    ) -> Optional[Account]:
        def value(role: str) -> Optional[str]:
            column = columns.get(role)
            if column is None:
                return None
            text = str(row.get(column, "")).strip()
            return text or None

        code = value("code")
        if not code:
            return None

        level = value("level")
        try:
            level_number = int(level) if level else None
        except ValueError:
            level_number = None

        return Account(
            code=code,
            name=value("name") or "",
            source=source,
            level=level_number,
            parent_code=value("parent"),
            account_type=value("type"),
            nature=value("nature"),
        )
