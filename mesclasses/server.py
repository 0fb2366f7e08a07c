from fastapi import FastAPI, APIRouter, UploadFile, File, Form, HTTPException, Query, Depends, Request
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.middleware.cors import CORSMiddleware
from motor.motor_asyncio import AsyncIOMotorClient
from pymongo.errors import PyMongoError
import logging

from mesclasses import config

# Setup logging early
logging.basicConfig(
    level=config.log_level(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)
from dataclasses import asdict
from typing import List, Optional, Dict, Any
import base64
import io

import uvicorn

from pydantic import ValidationError

from mesclasses import analytics, cascade, documents, hierarchy, importer, sessions as session_service
from mesclasses.context import AppContext, ClearNavigation, NavigateToClass, NavigateToSession
from mesclasses.errors import (
    CopyConflictError,
    MesClassesError,
    NotFoundError,
    UnsupportedFormatError,
)
from mesclasses.export import XLSX_MEDIA_TYPE, generate_dashboard_excel, generate_roster_excel
from mesclasses.models import (
    AttendanceUpdate,
    ClassBase,
    CopyClassRequest,
    CycleBase,
    DocumentInfo,
    FolderCreate,
    NavigationRequest,
    PreferencesUpdate,
    RenamePayload,
    SessionCreate,
    SessionUpdate,
    StudentBase,
    StudentRecord,
    StudentUpdate,
)
from mesclasses.store import EntityStore


app = FastAPI(title="mesclasses")
api_router = APIRouter(prefix="/api")


def get_store(request: Request) -> EntityStore:
    return request.app.state.store


def get_context(request: Request) -> AppContext:
    return request.app.state.context


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(CopyConflictError)
async def copy_conflict_handler(request: Request, exc: CopyConflictError):
    return JSONResponse(
        status_code=409,
        content={"detail": str(exc), "class_name": exc.class_name, "target_cycle_id": exc.target_cycle_id},
    )


@app.exception_handler(UnsupportedFormatError)
async def unsupported_format_handler(request: Request, exc: UnsupportedFormatError):
    return JSONResponse(status_code=415, content={"detail": str(exc), "fallback": "download"})


@app.exception_handler(MesClassesError)
async def domain_error_handler(request: Request, exc: MesClassesError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(PyMongoError)
async def storage_error_handler(request: Request, exc: PyMongoError):
    logger.exception("Storage operation failed: %s", exc)
    return JSONResponse(status_code=503, content={"detail": "Storage operation failed, please retry"})


@app.get("/health")
async def health_check():
    return {"status": "ok"}


def _class_payload(view: hierarchy.ClassView, students: List[StudentRecord]) -> Dict[str, Any]:
    return {**asdict(view), "student_count": len(hierarchy.students_in_class(students, view.name))}


def _group_payload(group: hierarchy.CycleGroup, students: List[StudentRecord]) -> Dict[str, Any]:
    return {
        "id": group.id,
        "name": group.name,
        "unassigned": group.is_unassigned,
        "classes": [_class_payload(view, students) for view in group.classes],
    }


def _student_payload(student: StudentRecord) -> Dict[str, Any]:
    return student.model_dump()


@api_router.get("/")
async def root():
    return {"message": "mesclasses API is running"}


# ---- cycles ----


@api_router.get("/cycles")
async def list_cycles(store: EntityStore = Depends(get_store)):
    return [cycle.model_dump() for cycle in await store.cycles.get_all()]


@api_router.post("/cycles")
async def create_cycle(payload: CycleBase, store: EntityStore = Depends(get_store)):
    if not payload.name.strip():
        raise HTTPException(status_code=400, detail="Cycle name is required")
    cycle = await cascade.create_cycle(store, payload.name)
    return cycle.model_dump()


@api_router.put("/cycles/{cycle_id}")
async def rename_cycle(cycle_id: str, payload: RenamePayload, store: EntityStore = Depends(get_store)):
    cycle = await store.cycles.get(cycle_id)
    if not cycle:
        raise HTTPException(status_code=404, detail="Cycle not found")
    cycle.name = payload.name.strip()
    await store.cycles.put(cycle)
    return cycle.model_dump()


@api_router.delete("/cycles/{cycle_id}")
async def delete_cycle(cycle_id: str, store: EntityStore = Depends(get_store)):
    removed = await cascade.delete_cycle(store, cycle_id)
    return {"status": "deleted", "deleted_classes": removed}


# ---- classes ----


@api_router.get("/classes")
async def list_classes(store: EntityStore = Depends(get_store)):
    classes, students = await store.classes.get_all(), await store.students.get_all()
    return [_class_payload(view, students) for view in hierarchy.effective_classes(classes, students)]


@api_router.get("/classes/grouped")
async def list_grouped_classes(store: EntityStore = Depends(get_store)):
    snapshot = await store.snapshot()
    views = hierarchy.effective_classes(snapshot.classes, snapshot.students)
    return [_group_payload(group, snapshot.students) for group in hierarchy.group_by_cycle(snapshot.cycles, views)]


@api_router.get("/cycles/{cycle_id}/classes")
async def get_cycle_group(cycle_id: str, store: EntityStore = Depends(get_store)):
    snapshot = await store.snapshot()
    views = hierarchy.effective_classes(snapshot.classes, snapshot.students)
    group = hierarchy.cycle_group(cycle_id, snapshot.cycles, views)
    if group is None:
        raise HTTPException(status_code=404, detail="Cycle not found")
    return _group_payload(group, snapshot.students)


@api_router.post("/classes")
async def create_class(payload: ClassBase, store: EntityStore = Depends(get_store)):
    if not payload.name.strip():
        raise HTTPException(status_code=400, detail="Class name is required")
    record, duplicate = await cascade.create_class(store, payload.name, payload.cycle_id)
    return {**record.model_dump(), "duplicate_name_warning": duplicate}


@api_router.put("/classes/{class_id}")
async def rename_class(class_id: str, payload: RenamePayload, store: EntityStore = Depends(get_store)):
    if not payload.name.strip():
        raise HTTPException(status_code=400, detail="Class name is required")
    view = await cascade.rename_class(store, class_id, payload.name)
    return asdict(view)


@api_router.delete("/classes/{class_id}")
async def delete_class(class_id: str, store: EntityStore = Depends(get_store)):
    removed = await cascade.delete_class(store, class_id)
    return {"status": "deleted", "deleted_students": removed}


@api_router.post("/classes/{class_id}/copy")
async def copy_class(class_id: str, payload: CopyClassRequest, store: EntityStore = Depends(get_store)):
    result = await cascade.copy_class(store, class_id, payload.target_cycle_id)
    return {
        "class": result.new_class.model_dump(),
        "copied_sessions": [s.id for s in result.sessions],
    }


@api_router.get("/classes/{class_id}/students")
async def get_class_students(
    class_id: str,
    q: Optional[str] = Query(default=None),
    store: EntityStore = Depends(get_store),
):
    view = await cascade.resolve_class(store, class_id)
    roster = hierarchy.students_in_class(await store.students.get_all(), view.name)
    if q:
        roster = hierarchy.search_students(roster, q)
    return [_student_payload(s) for s in roster]


@api_router.get("/classes/{class_id}/export")
async def export_class_roster(class_id: str, store: EntityStore = Depends(get_store)):
    view = await cascade.resolve_class(store, class_id)
    roster = hierarchy.students_in_class(await store.students.get_all(), view.name)
    content = generate_roster_excel(view.name, roster)
    headers = {"Content-Disposition": f"attachment; filename=roster_{view.id}.xlsx"}
    return StreamingResponse(io.BytesIO(content), media_type=XLSX_MEDIA_TYPE, headers=headers)


# ---- students ----


@api_router.get("/students")
async def list_students(
    q: Optional[str] = Query(default=None),
    class_name: Optional[str] = Query(default=None),
    store: EntityStore = Depends(get_store),
):
    students = await store.students.get_all()
    if class_name is not None:
        students = hierarchy.students_in_class(students, class_name)
    if q:
        students = hierarchy.search_students(students, q)
    return [_student_payload(s) for s in students]


@api_router.post("/students")
async def create_student(payload: StudentBase, store: EntityStore = Depends(get_store)):
    student = StudentRecord(**payload.model_dump())
    await store.students.put(student)
    return _student_payload(student)


@api_router.put("/students/{student_id}")
async def update_student(student_id: str, payload: StudentUpdate, store: EntityStore = Depends(get_store)):
    student = await store.students.get(student_id)
    if not student:
        raise HTTPException(status_code=404, detail="Student not found")
    update_data = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}
    updated = student.model_copy(update=update_data)
    await store.students.put(updated)
    return _student_payload(updated)


@api_router.put("/students/{student_id}/photo")
async def upload_student_photo(
    student_id: str,
    file: UploadFile = File(...),
    store: EntityStore = Depends(get_store),
):
    student = await store.students.get(student_id)
    if not student:
        raise HTTPException(status_code=404, detail="Student not found")
    content = await file.read()
    media_type = file.content_type or "image/jpeg"
    if not media_type.startswith("image/"):
        raise HTTPException(status_code=400, detail="Photo must be an image")
    student.photo_data = f"data:{media_type};base64,{base64.b64encode(content).decode('ascii')}"
    await store.students.put(student)
    return _student_payload(student)


@api_router.get("/students/{student_id}/summary")
async def get_student_summary(student_id: str, store: EntityStore = Depends(get_store)):
    student = await store.students.get(student_id)
    if not student:
        raise HTTPException(status_code=404, detail="Student not found")
    return analytics.student_summary(student, await store.sessions.get_all())


@api_router.delete("/students/{student_id}")
async def delete_student(student_id: str, store: EntityStore = Depends(get_store)):
    await cascade.delete_student(store, student_id)
    return {"status": "deleted"}


# ---- sessions ----


@api_router.get("/sessions")
async def list_sessions(
    class_name: Optional[str] = Query(default=None),
    cycle_id: Optional[str] = Query(default=None),
    store: EntityStore = Depends(get_store),
):
    all_sessions = await store.sessions.get_all()
    if class_name is not None:
        all_sessions = hierarchy.sessions_of_class(all_sessions, class_name, cycle_id)
    all_sessions.sort(key=lambda s: s.date, reverse=True)
    cycles = await store.cycles.get_all()
    return [
        {
            **s.model_dump(),
            "display_name": hierarchy.class_display_name(s.class_name, s.cycle_id, cycles),
            "rate": analytics.session_rate(s),
        }
        for s in all_sessions
    ]


@api_router.post("/sessions")
async def create_session(payload: SessionCreate, store: EntityStore = Depends(get_store)):
    session = await session_service.create_session(store, payload.class_id, payload.date, payload.time)
    return session.model_dump()


@api_router.get("/sessions/{session_id}")
async def get_session(session_id: str, store: EntityStore = Depends(get_store)):
    session = await session_service.get_session(store, session_id)
    students, cycles = await store.students.get_all(), await store.cycles.get_all()
    return {
        **session.model_dump(),
        "display_name": hierarchy.class_display_name(session.class_name, session.cycle_id, cycles),
        "roster": hierarchy.session_roster(session, students),
    }


@api_router.put("/sessions/{session_id}")
async def update_session(session_id: str, payload: SessionUpdate, store: EntityStore = Depends(get_store)):
    session = await session_service.update_session(store, session_id, payload)
    return session.model_dump()


@api_router.put("/sessions/{session_id}/attendance/{student_id}")
async def set_attendance(
    session_id: str,
    student_id: str,
    payload: AttendanceUpdate,
    store: EntityStore = Depends(get_store),
):
    session = await session_service.set_attendance(store, session_id, student_id, payload.status, payload.note)
    return session.model_dump()


@api_router.delete("/sessions/{session_id}")
async def delete_session(session_id: str, store: EntityStore = Depends(get_store)):
    await session_service.delete_session(store, session_id)
    return {"status": "deleted"}


# ---- import ----


async def _read_rows(file: UploadFile) -> List[List[Any]]:
    if not file.filename:
        raise HTTPException(status_code=400, detail="No file provided")
    content = await file.read()
    return importer.load_rows(content, file.filename)


@api_router.post("/import/preview")
async def preview_import(file: UploadFile = File(...)):
    rows = await _read_rows(file)
    return importer.preview_import(importer.plan_import(rows))


@api_router.post("/import/commit")
async def commit_import(
    file: UploadFile = File(...),
    class_id: Optional[str] = Form(default=None),
    mapping: Optional[str] = Form(default=None),
    store: EntityStore = Depends(get_store),
):
    rows = await _read_rows(file)
    column_mapping = None
    if mapping:
        try:
            column_mapping = importer.ColumnMapping.model_validate_json(mapping)
        except ValidationError as exc:
            raise HTTPException(status_code=400, detail=f"Invalid column mapping: {exc}")
    class_name = None
    if class_id:
        class_name = (await cascade.resolve_class(store, class_id)).name
    result = await importer.import_rows(store, rows, class_name=class_name, mapping=column_mapping)
    return {
        "mode": result.mode.value,
        "created_students": result.created,
        "class_names": sorted({s.class_name for s in result.students}),
    }


# ---- documents ----


@api_router.get("/documents", response_model=List[DocumentInfo])
async def list_documents(parent_id: Optional[str] = Query(default=None), store: EntityStore = Depends(get_store)):
    return documents.list_folder(await store.documents.get_all(), parent_id)


@api_router.post("/documents/folders", response_model=DocumentInfo)
async def create_folder(payload: FolderCreate, store: EntityStore = Depends(get_store)):
    if not payload.name.strip():
        raise HTTPException(status_code=400, detail="Folder name is required")
    return await documents.create_folder(store, payload.name, payload.parent_id)


@api_router.post("/documents/files", response_model=DocumentInfo)
async def upload_document(
    file: UploadFile = File(...),
    parent_id: Optional[str] = Form(default=None),
    store: EntityStore = Depends(get_store),
):
    if not file.filename:
        raise HTTPException(status_code=400, detail="No file provided")
    content = await file.read()
    return await documents.add_file(store, file.filename, file.content_type, content, parent_id)


@api_router.get("/documents/{document_id}/preview")
async def preview_document(document_id: str, store: EntityStore = Depends(get_store)):
    document = await store.documents.get(document_id)
    if not document:
        raise HTTPException(status_code=404, detail="Document not found")
    preview = documents.prepare_preview(document)
    headers = {"X-Document-Family": preview.family, "X-Render-Mode": preview.render_mode}
    return StreamingResponse(io.BytesIO(preview.content), media_type=preview.media_type, headers=headers)


@api_router.get("/documents/{document_id}/download")
async def download_document(document_id: str, store: EntityStore = Depends(get_store)):
    document = await store.documents.get(document_id)
    if not document or document.is_folder:
        raise HTTPException(status_code=404, detail="Document not found")
    headers = {"Content-Disposition": f"attachment; filename={document.name}"}
    return StreamingResponse(
        io.BytesIO(document.content or b""),
        media_type=document.type or "application/octet-stream",
        headers=headers,
    )


@api_router.delete("/documents/{document_id}")
async def delete_document(document_id: str, store: EntityStore = Depends(get_store)):
    removed = await documents.delete_document(store, document_id)
    return {"status": "deleted", "deleted": removed}


# ---- analytics ----


@api_router.get("/analytics/dashboard")
async def get_dashboard(store: EntityStore = Depends(get_store)):
    snapshot = await store.snapshot()
    return analytics.dashboard_stats(snapshot.students, snapshot.sessions, snapshot.classes, snapshot.cycles)


@api_router.get("/analytics/dashboard/export")
async def export_dashboard(store: EntityStore = Depends(get_store)):
    snapshot = await store.snapshot()
    stats = analytics.dashboard_stats(snapshot.students, snapshot.sessions, snapshot.classes, snapshot.cycles)
    headers = {"Content-Disposition": "attachment; filename=statistiques.xlsx"}
    return StreamingResponse(io.BytesIO(generate_dashboard_excel(stats)), media_type=XLSX_MEDIA_TYPE, headers=headers)


# ---- application context ----


@api_router.get("/context")
async def get_app_context(context: AppContext = Depends(get_context)):
    return context.as_dict()


@api_router.put("/context/preferences")
async def update_preferences(payload: PreferencesUpdate, context: AppContext = Depends(get_context)):
    try:
        if payload.language is not None:
            context.set_language(payload.language)
        if payload.theme is not None:
            context.set_theme(payload.theme)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return context.as_dict()


@api_router.post("/context/navigate")
async def navigate(payload: NavigationRequest, context: AppContext = Depends(get_context)):
    if payload.target == "class":
        if not payload.class_id:
            raise HTTPException(status_code=400, detail="class_id is required")
        context.dispatch(NavigateToClass(class_id=payload.class_id, cycle_id=payload.cycle_id))
    else:
        if not payload.session_id:
            raise HTTPException(status_code=400, detail="session_id is required")
        context.dispatch(NavigateToSession(session_id=payload.session_id))
    return context.as_dict()


@api_router.delete("/context/navigation")
async def clear_navigation(context: AppContext = Depends(get_context)):
    context.dispatch(ClearNavigation())
    return context.as_dict()


@app.on_event("startup")
async def open_store():
    client = AsyncIOMotorClient(config.mongo_url(), serverSelectionTimeoutMS=5000)
    app.state.mongo_client = client
    app.state.store = EntityStore.from_database(client[config.db_name()])
    app.state.context = AppContext()
    try:
        await client.admin.command('ping')
        logger.info("MongoDB connection successful")
    except Exception as e:
        logger.error(f"MongoDB connection failed: {e}")
        logger.error("Please check MONGO_URL in .env and make sure the local MongoDB server is running")
        return
    try:
        await app.state.store.ensure_indexes()
    except PyMongoError as e:
        logger.error(f"Error while creating indexes: {e}")


app.include_router(api_router)

app.add_middleware(
    CORSMiddleware,
    allow_credentials=True,
    allow_origins=config.cors_origins(),
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(GZipMiddleware, minimum_size=1024)


@app.on_event("shutdown")
async def shutdown_db_client():
    client = getattr(app.state, "mongo_client", None)
    if client is not None:
        client.close()


def main():
    uvicorn.run(app, host=config.server_host(), port=config.server_port())
