"""Folder tree of uploaded documents and the hand-off to the document viewer.

Rendering itself happens elsewhere: this module only decides whether a file
belongs to the pdf family (paginated) or the word-processing family (flowed)
and passes the bytes along.
"""
import logging
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional

from mesclasses.errors import MesClassesError, NotFoundError, UnsupportedFormatError
from mesclasses.models import DocumentRecord
from mesclasses.store import EntityStore

logger = logging.getLogger(__name__)

PDF_NAME = re.compile(r"\.pdf$", re.IGNORECASE)
WORD_NAME = re.compile(r"\.(docx|doc)$", re.IGNORECASE)

RENDER_MODES = {"pdf": "paginate", "word": "flow"}


@dataclass
class Preview:
    family: str
    render_mode: str
    media_type: str
    content: bytes


def size_label(num_bytes: int) -> str:
    return f"{num_bytes / 1024:.1f} KB"


def classify_document(name: str, media_type: Optional[str]) -> str:
    media_type = media_type or ""
    if PDF_NAME.search(name) or media_type == "application/pdf":
        return "pdf"
    if WORD_NAME.search(name) or "wordprocessing" in media_type:
        return "word"
    raise UnsupportedFormatError(f"No preview available for '{name}'")


def prepare_preview(document: DocumentRecord) -> Preview:
    if document.is_folder or document.content is None:
        raise UnsupportedFormatError(f"'{document.name}' has no content to preview")
    family = classify_document(document.name, document.type)
    return Preview(
        family=family,
        render_mode=RENDER_MODES[family],
        media_type=document.type or "application/octet-stream",
        content=document.content,
    )


def list_folder(documents: Iterable[DocumentRecord], parent_id: Optional[str]) -> List[DocumentRecord]:
    return [d for d in documents if (d.parent_id or None) == (parent_id or None)]


def descendants(documents: List[DocumentRecord], folder_id: str) -> List[DocumentRecord]:
    found = []
    pending = [folder_id]
    while pending:
        parent = pending.pop()
        for child in documents:
            if child.parent_id == parent:
                found.append(child)
                if child.is_folder:
                    pending.append(child.id)
    return found


async def _check_parent(store: EntityStore, parent_id: Optional[str]) -> None:
    if not parent_id:
        return
    parent = await store.documents.get(parent_id)
    if parent is None:
        raise NotFoundError(f"Folder {parent_id} not found")
    if not parent.is_folder:
        raise MesClassesError(f"'{parent.name}' is not a folder")


async def create_folder(store: EntityStore, name: str, parent_id: Optional[str] = None) -> DocumentRecord:
    await _check_parent(store, parent_id)
    folder = DocumentRecord(name=name.strip(), category="folder", type="folder", parent_id=parent_id or None)
    await store.documents.put(folder)
    return folder


async def add_file(
    store: EntityStore,
    name: str,
    media_type: Optional[str],
    content: bytes,
    parent_id: Optional[str] = None,
) -> DocumentRecord:
    await _check_parent(store, parent_id)
    document = DocumentRecord(
        name=name,
        category="file",
        type=media_type or "",
        parent_id=parent_id or None,
        size=size_label(len(content)),
        content=content,
    )
    await store.documents.put(document)
    logger.info("Stored document '%s' (%s)", name, document.size)
    return document


async def delete_document(store: EntityStore, document_id: str) -> int:
    """Delete a document; a folder takes its whole subtree with it."""
    document = await store.documents.get(document_id)
    if document is None:
        raise NotFoundError(f"Document {document_id} not found")
    doomed = [document]
    if document.is_folder:
        doomed.extend(descendants(await store.documents.get_all(), document.id))
    for item in doomed:
        await store.documents.delete(item.id)
    logger.info("Deleted '%s' and %d nested documents", document.name, len(doomed) - 1)
    return len(doomed)
