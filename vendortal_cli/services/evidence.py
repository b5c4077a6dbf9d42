from __future__ import annotations

import hashlib
import mimetypes
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional

from vendortal_cli.client import VendorTalClient
from vendortal_cli.exceptions import ValidationError

EVIDENCE_BUCKET = "assessment-evidence"
MAX_EVIDENCE_BYTES = 10 * 1024 * 1024
_MAX_FILENAME_LENGTH = 64

ALLOWED_EVIDENCE_TYPES: Dict[str, str] = {
    "application/pdf": "PDF",
    "application/msword": "DOC",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": "DOCX",
    "application/vnd.ms-excel": "XLS",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": "XLSX",
    "image/jpeg": "JPG",
    "image/png": "PNG",
    "text/plain": "TXT",
}


@dataclass
class EvidenceFile:
    name: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)

    @classmethod
    def from_path(cls, path: Path) -> "EvidenceFile":
        content_type, _ = mimetypes.guess_type(path.name)
        return cls(
            name=path.name,
            content_type=content_type or "application/octet-stream",
            data=path.read_bytes(),
        )


def validate_evidence_file(evidence: EvidenceFile) -> None:
    if evidence.size > MAX_EVIDENCE_BYTES:
        raise ValidationError(
            f"File {evidence.name} is too large. Maximum size is 10MB."
        )
    if evidence.content_type not in ALLOWED_EVIDENCE_TYPES:
        formats = ", ".join(dict.fromkeys(ALLOWED_EVIDENCE_TYPES.values()))
        raise ValidationError(
            f"File {evidence.name} has an unsupported format. Please use {formats} files."
        )


def _truncate_filename(filename: str) -> str:
    if len(filename) <= _MAX_FILENAME_LENGTH:
        return filename

    extension = ""
    stem = filename
    if "." in filename and not filename.startswith("."):
        stem, ext = filename.rsplit(".", 1)
        extension = "." + ext

    digest = hashlib.sha1(filename.encode("utf-8")).hexdigest()[:8]
    keep = _MAX_FILENAME_LENGTH - len(extension) - len(digest) - 1
    if keep < 1:
        return filename[:_MAX_FILENAME_LENGTH]
    return f"{stem[:keep]}-{digest}{extension}"


def storage_filename(filename: str) -> str:
    """Reduce an uploaded file name to a safe object-store key component."""
    basename = filename.replace("\\", "/").split("/")[-1]
    basename = re.sub(r"[\x00-\x1f\x7f]+", "", basename).strip()
    basename = re.sub(r"[^A-Za-z0-9._-]+", "-", basename).strip(".-")
    if not basename:
        basename = "evidence.bin"
    return _truncate_filename(basename)


class EvidenceStore:
    def __init__(self, client: VendorTalClient, bucket: str = EVIDENCE_BUCKET) -> None:
        self.client = client
        self.bucket = bucket

    def validate(self, evidence: EvidenceFile) -> None:
        validate_evidence_file(evidence)

    def object_path(
        self,
        assessment_id: str,
        question_id: str,
        evidence: EvidenceFile,
        now: Optional[datetime] = None,
    ) -> str:
        stamp = int((now or datetime.now(timezone.utc)).timestamp() * 1000)
        return f"{assessment_id}/{question_id}/{stamp}-{storage_filename(evidence.name)}"

    def upload(
        self,
        assessment_id: str,
        question_id: str,
        evidence: EvidenceFile,
        now: Optional[datetime] = None,
    ) -> str:
        self.validate(evidence)
        path = self.object_path(assessment_id, question_id, evidence, now)
        return self.client.upload_object(self.bucket, path, evidence.data, evidence.content_type)
