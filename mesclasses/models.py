import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from mesclasses.dates import DATE_SENTINEL

UNASSIGNED_CYCLE_ID = "unassigned"
VIRTUAL_CLASS_PREFIX = "virtual-"
IMPORTED_CLASS_NAME = "Imported"


def new_id() -> str:
    return str(uuid.uuid4())


def today_iso() -> str:
    return datetime.now(timezone.utc).date().isoformat()


class AttendanceStatus(str, Enum):
    PRESENT = "present"
    ABSENT = "absent"
    LATE = "late"
    SICK = "sick"
    NO_KIT = "no_kit"
    EXEMPTED = "exempted"


# ---- stored records ----


class CycleBase(BaseModel):
    name: str


class CycleRecord(CycleBase):
    model_config = ConfigDict(extra="ignore")
    id: str = Field(default_factory=new_id)


class ClassBase(BaseModel):
    name: str
    cycle_id: Optional[str] = None


class ClassRecord(ClassBase):
    model_config = ConfigDict(extra="ignore")
    id: str = Field(default_factory=new_id)


class StudentBase(BaseModel):
    massar_id: str = ""
    first_name: str = ""
    last_name: str = ""
    birth_date: str = DATE_SENTINEL
    class_name: str


class StudentRecord(StudentBase):
    model_config = ConfigDict(extra="ignore")
    id: str = Field(default_factory=new_id)
    photo_data: Optional[str] = None


class StudentUpdate(BaseModel):
    massar_id: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    birth_date: Optional[str] = None
    class_name: Optional[str] = None


class AttendanceEntry(BaseModel):
    model_config = ConfigDict(use_enum_values=True, validate_default=True)
    student_id: str
    status: AttendanceStatus = AttendanceStatus.PRESENT
    note: Optional[str] = None


class SessionRecord(BaseModel):
    model_config = ConfigDict(extra="ignore")
    id: str = Field(default_factory=new_id)
    date: str
    time: Optional[str] = None
    class_name: str
    cycle_id: Optional[str] = None
    notes: str = ""
    attendance: List[AttendanceEntry] = Field(default_factory=list)


class SessionCreate(BaseModel):
    class_id: str
    date: str = Field(default_factory=today_iso)
    time: Optional[str] = None


class SessionUpdate(BaseModel):
    date: Optional[str] = None
    time: Optional[str] = None
    notes: Optional[str] = None
    attendance: Optional[List[AttendanceEntry]] = None


class AttendanceUpdate(BaseModel):
    model_config = ConfigDict(use_enum_values=True)
    status: AttendanceStatus
    note: Optional[str] = None


class DocumentRecord(BaseModel):
    model_config = ConfigDict(extra="ignore")
    id: str = Field(default_factory=new_id)
    name: str
    category: Literal["folder", "file"]
    type: str
    parent_id: Optional[str] = None
    date_added: str = Field(default_factory=today_iso)
    size: str = "-"
    content: Optional[bytes] = None

    @property
    def is_folder(self) -> bool:
        return self.category == "folder"


class DocumentInfo(BaseModel):
    """Document metadata without its content, as listed to clients."""

    id: str
    name: str
    category: Literal["folder", "file"]
    type: str
    parent_id: Optional[str] = None
    date_added: str
    size: str


class FolderCreate(BaseModel):
    name: str
    parent_id: Optional[str] = None


# ---- request payloads ----


class RenamePayload(BaseModel):
    name: str


class CopyClassRequest(BaseModel):
    target_cycle_id: str


class PreferencesUpdate(BaseModel):
    language: Optional[str] = None
    theme: Optional[str] = None


class NavigationRequest(BaseModel):
    target: Literal["class", "session"]
    class_id: Optional[str] = None
    cycle_id: Optional[str] = None
    session_id: Optional[str] = None
