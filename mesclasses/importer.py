"""Roster import from spreadsheets.

A sheet is either an official Massar export or an arbitrary table:

* Massar exports carry a fixed 15-row header block; the student rows start at
  row index 15 with the id in column C, the full name in column D and the
  birth date in column F. A sheet is treated as Massar when it has more than
  15 rows and row 15 has something in column C. Nothing else is checked.
* Any other sheet uses its first row as headers. :func:`suggest_mapping`
  guesses which header holds the id, the name and the birth date; callers may
  edit that mapping before committing.

Rows that lack the minimum fields are dropped without error. Committed
students are written one at a time and never matched against existing ones,
so importing the same file twice yields duplicates.
"""
import io
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pandas as pd
from pydantic import BaseModel

from mesclasses.dates import normalize_date
from mesclasses.errors import InvalidImportFile, MissingMappingError
from mesclasses.models import IMPORTED_CLASS_NAME, StudentRecord
from mesclasses.store import EntityStore

logger = logging.getLogger(__name__)

MASSAR_FIRST_ROW = 15
MASSAR_ID_COL = 2
MASSAR_NAME_COL = 3
MASSAR_BIRTH_DATE_COL = 5

# Header text that slipped into the data block, e.g. "Nom et Prénom".
HEADER_LEAK_PATTERN = re.compile(r"nom|prenom", re.IGNORECASE)


class ImportMode(str, Enum):
    MASSAR = "massar"
    GENERIC = "generic"


class ColumnMapping(BaseModel):
    """Header text chosen for each student field in a generic sheet."""

    massar_id: Optional[str] = None
    full_name: Optional[str] = None
    birth_date: Optional[str] = None
    class_name: Optional[str] = None


@dataclass
class ImportPlan:
    mode: ImportMode
    rows: List[List[Any]]
    headers: List[str] = field(default_factory=list)
    mapping: ColumnMapping = field(default_factory=ColumnMapping)

    @property
    def data_rows(self) -> List[List[Any]]:
        if self.mode == ImportMode.MASSAR:
            return self.rows[MASSAR_FIRST_ROW:]
        return self.rows[1:]


@dataclass
class ImportResult:
    mode: ImportMode
    students: List[StudentRecord]

    @property
    def created(self) -> int:
        return len(self.students)


# ---- reading ----


def _decode(content: bytes) -> str:
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError:
        return content.decode("latin-1")


def _read_csv(content: bytes) -> pd.DataFrame:
    text = _decode(content)
    lines = text.splitlines()
    if not any(line.strip() for line in lines):
        raise InvalidImportFile("The file is empty")
    # rows of a Massar export differ in length, so size the frame on the widest line
    width = max(line.count(",") + 1 for line in lines)
    return pd.read_csv(
        io.StringIO(text),
        header=None,
        names=list(range(width)),
        dtype=str,
        keep_default_na=False,
        skip_blank_lines=False,
        engine="python",
    )


def load_rows(content: bytes, filename: str) -> List[List[Any]]:
    """Read the first sheet of an ``.xlsx``/``.xls``/``.csv`` file as rows of raw cells."""
    name = (filename or "").lower()
    try:
        if name.endswith(".csv"):
            frame = _read_csv(content)
        else:
            engine = "xlrd" if name.endswith(".xls") else "openpyxl"
            frame = pd.read_excel(io.BytesIO(content), sheet_name=0, header=None, dtype=object, engine=engine)
    except InvalidImportFile:
        raise
    except Exception as exc:
        raise InvalidImportFile(f"Invalid spreadsheet: {exc}") from exc
    frame = frame.astype(object).where(pd.notna(frame), None)
    return [list(row) for row in frame.itertuples(index=False, name=None)]


def cell(row: Sequence[Any], index: int) -> Any:
    if index < 0 or index >= len(row):
        return None
    return row[index]


def cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float):
        if pd.isna(value):
            return ""
        if value.is_integer():
            return str(int(value))
    return str(value).strip()


# ---- classification and mapping ----


def is_massar_sheet(rows: Sequence[Sequence[Any]]) -> bool:
    return len(rows) > MASSAR_FIRST_ROW and cell_text(cell(rows[MASSAR_FIRST_ROW], MASSAR_ID_COL)) != ""


def _first_header(headers: List[str], predicate) -> Optional[str]:
    for header in headers:
        if predicate(header.lower()):
            return header
    return None


def suggest_mapping(headers: List[str]) -> ColumnMapping:
    return ColumnMapping(
        massar_id=_first_header(headers, lambda h: "massar" in h or "code" in h or h == "id"),
        birth_date=_first_header(
            headers,
            lambda h: ("date" in h and ("naissance" in h or "birth" in h)) or h in ("ddn", "dob", "date"),
        ),
        full_name=_first_header(headers, lambda h: h == "nom" or "nom" in h or "name" in h),
    )


def plan_import(rows: List[List[Any]]) -> ImportPlan:
    if is_massar_sheet(rows):
        return ImportPlan(mode=ImportMode.MASSAR, rows=rows)
    headers = [cell_text(h) for h in rows[0]] if rows else []
    return ImportPlan(mode=ImportMode.GENERIC, rows=rows, headers=headers, mapping=suggest_mapping(headers))


def preview_import(plan: ImportPlan) -> Dict[str, Any]:
    warnings = []
    if plan.mode == ImportMode.GENERIC:
        if not plan.mapping.birth_date:
            warnings.append("missing_birth_date_column")
        if not plan.mapping.massar_id:
            warnings.append("missing_massar_column")
    return {
        "mode": plan.mode.value,
        "headers": plan.headers,
        "mapping": plan.mapping.model_dump(),
        "detected_rows": len(plan.data_rows),
        "warnings": warnings,
    }


# ---- building students ----


def split_massar_name(raw: str) -> Tuple[str, str]:
    """``"EL AMRANI Youssef"`` -> ``("EL", "AMRANI Youssef")``; returns (last, first)."""
    parts = raw.split()
    if len(parts) > 1:
        return parts[0], " ".join(parts[1:])
    return raw, ""


def split_generic_name(raw: str) -> Tuple[str, str]:
    """``"Alaoui Sara"`` -> ``("Alaoui", "Sara")``: the last word is the first name."""
    parts = raw.split()
    if len(parts) > 1:
        return " ".join(parts[:-1]), parts[-1]
    return raw, ""


def massar_students(rows: Sequence[Sequence[Any]], class_name: Optional[str]) -> List[StudentRecord]:
    students = []
    for row in rows[MASSAR_FIRST_ROW:]:
        raw_name = cell_text(cell(row, MASSAR_NAME_COL))
        if not raw_name or HEADER_LEAK_PATTERN.search(raw_name):
            continue
        last_name, first_name = split_massar_name(raw_name)
        students.append(StudentRecord(
            massar_id=cell_text(cell(row, MASSAR_ID_COL)),
            first_name=first_name,
            last_name=last_name,
            birth_date=normalize_date(cell(row, MASSAR_BIRTH_DATE_COL)),
            class_name=class_name or IMPORTED_CLASS_NAME,
        ))
    return students


def _column_index(headers: List[str], header: Optional[str]) -> int:
    if not header or header not in headers:
        return -1
    return headers.index(header)


def generic_students(
    headers: List[str],
    rows: Sequence[Sequence[Any]],
    mapping: ColumnMapping,
    class_name: Optional[str],
) -> List[StudentRecord]:
    id_col = _column_index(headers, mapping.massar_id)
    if id_col < 0:
        raise MissingMappingError("Select the column holding the Massar code before importing")
    name_col = _column_index(headers, mapping.full_name)
    birth_col = _column_index(headers, mapping.birth_date)
    class_col = -1 if class_name else _column_index(headers, mapping.class_name)

    students = []
    for row in rows:
        massar_id = cell_text(cell(row, id_col))
        last_name, first_name = split_generic_name(cell_text(cell(row, name_col))) if name_col > -1 else ("", "")
        if not massar_id or not (first_name or last_name):
            continue
        row_class = cell_text(cell(row, class_col)) if class_col > -1 else ""
        students.append(StudentRecord(
            massar_id=massar_id,
            first_name=first_name,
            last_name=last_name,
            birth_date=normalize_date(cell(row, birth_col) if birth_col > -1 else None),
            class_name=class_name or row_class or IMPORTED_CLASS_NAME,
        ))
    return students


def build_students(plan: ImportPlan, class_name: Optional[str] = None) -> List[StudentRecord]:
    if plan.mode == ImportMode.MASSAR:
        return massar_students(plan.rows, class_name)
    return generic_students(plan.headers, plan.data_rows, plan.mapping, class_name)


async def commit_import(store: EntityStore, students: List[StudentRecord]) -> int:
    for student in students:
        await store.students.put(student)
    return len(students)


async def import_rows(
    store: EntityStore,
    rows: List[List[Any]],
    class_name: Optional[str] = None,
    mapping: Optional[ColumnMapping] = None,
) -> ImportResult:
    plan = plan_import(rows)
    if mapping is not None and plan.mode == ImportMode.GENERIC:
        plan.mapping = mapping
    students = build_students(plan, class_name)
    await commit_import(store, students)
    logger.info(
        "Imported %d students (%s mode) into %s",
        len(students), plan.mode.value, class_name or "per-row classes",
    )
    return ImportResult(mode=plan.mode, students=students)
