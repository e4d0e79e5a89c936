import csv
import io
import logging
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from apps.invest.config import get_invest_settings
from apps.invest.errors import ApiError
from apps.invest.models.activity import ActivityAction
from apps.invest.models.document import Document
from apps.invest.models.version import DocumentVersion, VersionType
from apps.invest.services.activity_service import ActivityService
from apps.invest.storage import LocalObjectStorage, ObjectNotFound, StorageError
from common.utils.files import (
    categorize_file,
    format_bytes,
    get_extension,
    get_file_metadata,
    get_mime_type,
    validate_file,
)
from core.auth.models import User

logger = logging.getLogger(__name__)

EXPORT_HEADER = ["Version", "Date Created", "Created By", "Current Version", "Notes"]
COMPARED_FIELDS = ["file_name", "file_size", "mime_type", "label", "comment"]


def describe_changes(previous: Optional[DocumentVersion], file_name: Optional[str], file_size: int) -> str:
    """Short summary of how a new file differs from the previous version."""
    if previous is None:
        return "Initial version"
    if previous.file_size != file_size:
        diff = file_size - previous.file_size
        if diff > 0:
            return f"File size increased by {format_bytes(diff)}"
        return f"File size decreased by {format_bytes(abs(diff))}"
    if previous.file_name != file_name:
        return f"File renamed from {previous.file_name} to {file_name}"
    return "New version"


def flatten(value, prefix: str = "") -> dict:
    """Flatten nested dicts into dotted paths: {"a": {"b": 1}} -> {"a.b": 1}."""
    if not isinstance(value, dict):
        return {prefix: value}
    flat = {}
    for key, item in value.items():
        path = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(item, dict) and item:
            flat.update(flatten(item, path))
        else:
            flat[path] = item
    return flat


def diff_versions(version_a: DocumentVersion, version_b: DocumentVersion) -> List[dict]:
    side_a = {field: getattr(version_a, field) for field in COMPARED_FIELDS}
    side_b = {field: getattr(version_b, field) for field in COMPARED_FIELDS}
    side_a.update(flatten(version_a.file_metadata or {}, "metadata"))
    side_b.update(flatten(version_b.file_metadata or {}, "metadata"))

    differences = []
    for path in sorted(set(side_a) | set(side_b)):
        value_a = side_a.get(path)
        value_b = side_b.get(path)
        if value_a == value_b:
            continue
        if value_a is None:
            differences.append({"type": "added", "path": path, "value_b": value_b})
        elif value_b is None:
            differences.append({"type": "removed", "path": path, "value_a": value_a})
        else:
            differences.append({"type": "changed", "path": path, "value_a": value_a, "value_b": value_b})
    return differences


class VersionService:
    def __init__(self, session: AsyncSession, storage: LocalObjectStorage):
        self.session = session
        self.storage = storage
        self.activity = ActivityService(session)

    async def latest_version(self, document_id: UUID) -> Optional[DocumentVersion]:
        result = await self.session.execute(
            select(DocumentVersion)
            .where(DocumentVersion.document_id == document_id)
            .order_by(DocumentVersion.version_number.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def _next_version_number(self, document_id: UUID) -> int:
        result = await self.session.execute(
            select(func.max(DocumentVersion.version_number)).where(DocumentVersion.document_id == document_id)
        )
        return (result.scalar() or 0) + 1

    async def _label_taken(self, document_id: UUID, label: str) -> bool:
        result = await self.session.execute(
            select(DocumentVersion.id).where(
                DocumentVersion.document_id == document_id,
                DocumentVersion.label == label,
            )
        )
        return result.first() is not None

    @staticmethod
    def point_document_at(document: Document, version: DocumentVersion):
        """Copy a version's file onto the document and make it current."""
        document.file_name = version.file_name
        document.file_size = version.file_size
        document.mime_type = version.mime_type
        if version.file_url:
            document.file_url = version.file_url
        document.storage_key = version.storage_key
        if version.file_name or version.mime_type:
            document.file_type = categorize_file(version.mime_type, version.file_name or "")
        document.current_version_id = version.id
        document.current_version_number = version.version_number

    async def add_version(
        self,
        document: Document,
        user_id: UUID,
        version_type: str,
        file_name: Optional[str],
        file_size: int,
        mime_type: Optional[str],
        file_url: Optional[str],
        storage_key: Optional[str],
        metadata: Optional[dict] = None,
        comment: Optional[str] = None,
        label: Optional[str] = None,
        changes: Optional[str] = None,
        content_id: Optional[UUID] = None,
        make_current: bool = True
    ) -> DocumentVersion:
        """
        Append a version to a document's history.

        The version gets the next free number. With ``make_current`` the
        document's file fields and current pointer follow it. Nothing is
        committed here.
        """
        if changes is None:
            changes = describe_changes(await self.latest_version(document.id), file_name, file_size)

        version = DocumentVersion(
            document_id=document.id,
            version_number=await self._next_version_number(document.id),
            version_type=version_type,
            label=label,
            file_name=file_name,
            file_size=file_size,
            mime_type=mime_type,
            file_url=file_url,
            storage_key=storage_key,
            file_metadata=metadata or {},
            comment=comment,
            changes=changes,
            content_id=content_id,
            created_by=user_id,
        )
        self.session.add(version)
        await self.session.flush()

        if make_current:
            self.point_document_at(document, version)
        return version

    async def list_versions(self, document: Document) -> List[dict]:
        result = await self.session.execute(
            select(DocumentVersion, User.name)
            .join(User, User.id == DocumentVersion.created_by, isouter=True)
            .where(DocumentVersion.document_id == document.id)
            .order_by(DocumentVersion.version_number.desc())
        )
        return [
            self.describe(version, creator_name, document)
            for version, creator_name in result.all()
        ]

    @staticmethod
    def describe(version: DocumentVersion, creator_name: Optional[str], document: Document) -> dict:
        """Version fields plus creator name and current flag, ready for VersionRead."""
        return {
            "id": version.id,
            "document_id": version.document_id,
            "version_number": version.version_number,
            "version_type": version.version_type,
            "label": version.label,
            "file_name": version.file_name,
            "file_size": version.file_size,
            "mime_type": version.mime_type,
            "file_url": version.file_url,
            "metadata": version.file_metadata or {},
            "comment": version.comment,
            "changes": version.changes,
            "content_id": version.content_id,
            "created_by": version.created_by,
            "created_by_name": creator_name,
            "created_at": version.created_at,
            "is_current": version.id == document.current_version_id,
        }

    async def _creator_name(self, user_id: UUID) -> Optional[str]:
        result = await self.session.execute(select(User.name).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def get_version(self, document_id: UUID, version_id: UUID) -> DocumentVersion:
        result = await self.session.execute(
            select(DocumentVersion).where(
                DocumentVersion.id == version_id,
                DocumentVersion.document_id == document_id,
            )
        )
        version = result.scalar_one_or_none()
        if not version:
            raise ApiError.not_found("Version not found")
        return version

    async def get_version_by_number(self, document_id: UUID, version_number: int) -> Optional[DocumentVersion]:
        result = await self.session.execute(
            select(DocumentVersion).where(
                DocumentVersion.document_id == document_id,
                DocumentVersion.version_number == version_number,
            )
        )
        return result.scalar_one_or_none()

    async def create_version(
        self,
        document: Document,
        user: User,
        data: Optional[bytes] = None,
        filename: Optional[str] = None,
        content_type: Optional[str] = None,
        comment: Optional[str] = None,
        label: Optional[str] = None
    ) -> dict:
        """Upload a new file version, or snapshot the current file when no file is given."""
        if label and await self._label_taken(document.id, label):
            raise ApiError.bad_request("Version already exists")

        if data is None:
            current = None
            if document.current_version_id:
                current = await self.get_version(document.id, document.current_version_id)
            version = await self.add_version(
                document,
                user.id,
                VersionType.SNAPSHOT,
                file_name=document.file_name,
                file_size=document.file_size,
                mime_type=document.mime_type,
                file_url=document.file_url,
                storage_key=document.storage_key,
                metadata=current.file_metadata if current else {},
                comment=comment,
                label=label,
                changes=f"Snapshot of version {document.current_version_number or 1}",
            )
        else:
            filename = filename or "upload"
            settings = get_invest_settings()
            is_valid, errors = validate_file(filename, len(data), content_type, settings.MAX_UPLOAD_SIZE)
            if not is_valid:
                raise ApiError.bad_request("; ".join(errors))

            mime_type = get_mime_type(content_type, filename)
            key = self.storage.build_key(user.id, get_extension(filename))
            try:
                file_url = self.storage.put(key, data)
            except (OSError, StorageError) as e:
                logger.error(f"Failed to store new version of document {document.id}: {e}")
                raise ApiError.internal("Failed to store file")

            version = await self.add_version(
                document,
                user.id,
                VersionType.UPLOAD,
                file_name=filename,
                file_size=len(data),
                mime_type=mime_type,
                file_url=file_url,
                storage_key=key,
                metadata=get_file_metadata(data, mime_type),
                comment=comment,
                label=label,
            )

        self.activity.record(
            document.id, user.id, ActivityAction.VERSION_CREATED,
            f"Version {version.version_number} created"
        )
        await self.session.commit()
        await self.session.refresh(version)
        await self.session.refresh(document)
        logger.info(f"Created version {version.version_number} of document {document.id}", extra={"document_id": str(document.id)})
        return self.describe(version, user.name, document)

    async def set_current(self, document: Document, user: User, version_number: int) -> None:
        version = await self.get_version_by_number(document.id, version_number)
        if not version:
            raise ApiError.not_found("Version not found")

        self.point_document_at(document, version)
        self.activity.record(
            document.id, user.id, ActivityAction.CURRENT_VERSION_CHANGED,
            f"Current version set to {version_number}"
        )
        await self.session.commit()

    async def delete_version(self, document: Document, user: User, version_id: UUID) -> None:
        version = await self.get_version(document.id, version_id)
        if version.id == document.current_version_id:
            raise ApiError.bad_request("Cannot delete the current version")

        storage_key = version.storage_key
        version_number = version.version_number
        await self.session.delete(version)
        self.activity.record(
            document.id, user.id, ActivityAction.VERSION_DELETED,
            f"Version {version_number} deleted"
        )
        await self.session.commit()

        if storage_key and not await self._key_in_use(document, storage_key):
            try:
                self.storage.delete(storage_key)
            except (OSError, StorageError) as e:
                logger.error(f"Failed to delete stored object {storage_key}: {e}")

    async def _key_in_use(self, document: Document, storage_key: str) -> bool:
        if document.storage_key == storage_key:
            return True
        result = await self.session.execute(
            select(DocumentVersion.id).where(
                DocumentVersion.document_id == document.id,
                DocumentVersion.storage_key == storage_key,
            )
        )
        return result.first() is not None

    async def restore_version(self, document: Document, user: User, version_id: UUID) -> dict:
        source = await self.get_version(document.id, version_id)
        version = await self.add_version(
            document,
            user.id,
            VersionType.RESTORE,
            file_name=source.file_name,
            file_size=source.file_size,
            mime_type=source.mime_type,
            file_url=source.file_url,
            storage_key=source.storage_key,
            metadata=dict(source.file_metadata or {}),
            comment=f"Restored from version {source.version_number}",
            changes=f"Restored to version {source.version_number}",
            content_id=source.content_id,
        )
        self.activity.record(
            document.id, user.id, ActivityAction.VERSION_RESTORED,
            f"Version {source.version_number} restored as version {version.version_number}"
        )
        await self.session.commit()
        await self.session.refresh(version)
        await self.session.refresh(document)
        return self.describe(version, user.name, document)

    async def download(self, document: Document, version_id: UUID) -> Tuple[bytes, str, str]:
        """Return (bytes, filename, mime type) of a version's stored file."""
        version = await self.get_version(document.id, version_id)
        if not version.storage_key:
            raise ApiError.not_found("File not found")
        try:
            data = self.storage.get(version.storage_key)
        except ObjectNotFound:
            raise ApiError.not_found("File not found")
        filename = version.file_name or f"document_{document.id}_v{version.version_number}"
        return data, filename, version.mime_type or "application/octet-stream"

    async def compare(self, document: Document, version_a: Optional[int], version_b: Optional[int]) -> dict:
        if version_a is None or version_b is None:
            raise ApiError.bad_request("Both version_a and version_b are required")

        first = await self.get_version_by_number(document.id, version_a)
        second = await self.get_version_by_number(document.id, version_b)
        if not first or not second:
            raise ApiError.not_found("One or both versions not found")

        sides = []
        for version in (first, second):
            sides.append({
                "id": version.id,
                "version_number": version.version_number,
                "label": version.label,
                "created_at": version.created_at,
                "created_by_name": await self._creator_name(version.created_by),
                "file_name": version.file_name,
                "file_size": version.file_size,
                "mime_type": version.mime_type,
            })

        return {
            "version_a": sides[0],
            "version_b": sides[1],
            "differences": diff_versions(first, second),
        }

    async def export_csv(self, document: Document) -> Tuple[str, str]:
        """Version history as CSV text plus the attachment file name."""
        versions = await self.list_versions(document)

        buffer = io.StringIO()
        writer = csv.writer(buffer)
        writer.writerow(EXPORT_HEADER)
        for version in versions:
            writer.writerow([
                version["label"] or f"v{version['version_number']}",
                version["created_at"].strftime("%Y-%m-%d %H:%M:%S"),
                version["created_by_name"] or "Unknown",
                "Yes" if version["is_current"] else "No",
                version["comment"] or version["changes"] or "",
            ])

        return buffer.getvalue(), f"document_{document.id}_version_history.csv"
