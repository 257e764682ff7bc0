"""Zip archive traversal for bulk image uploads."""
import io
import logging
import posixpath
import zipfile
from collections import namedtuple

from imagehub.errors import ArchiveFormatError

logger = logging.getLogger(__name__)

ARCHIVE_IMAGE_EXTENSIONS = {"jpg", "jpeg", "png", "webp", "gif", "bmp"}

ArchiveMember = namedtuple("ArchiveMember", ["name", "data"])


def is_archive(file_name, data):
    """True when the upload is named ``*.zip`` and carries a zip signature."""
    if not (file_name or "").lower().endswith(".zip"):
        return False
    return zipfile.is_zipfile(io.BytesIO(data))


def is_image_member(path):
    ext = posixpath.splitext(path)[1].lstrip(".").lower()
    return ext in ARCHIVE_IMAGE_EXTENSIONS


def extract_images(data, progress=None):
    """Open a zip archive and return a lazy iterator over its image members.

    The container is parsed before this returns, so a corrupt or non-zip
    payload raises ``ArchiveFormatError`` up front. Directory entries and
    non-image members are skipped. ``progress(processed, total)`` is called
    once per entry, image or not.
    """
    try:
        archive = zipfile.ZipFile(io.BytesIO(data))
        entries = archive.infolist()
    except (zipfile.BadZipFile, zipfile.LargeZipFile, OSError, ValueError) as e:
        raise ArchiveFormatError("Could not read archive") from e

    logger.info("Archive opened with %d entries", len(entries))
    return _iter_members(archive, entries, progress)


def _iter_members(archive, entries, progress):
    total = len(entries)
    with archive:
        for processed, info in enumerate(entries, start=1):
            if not info.is_dir() and is_image_member(info.filename):
                try:
                    member_data = archive.read(info)
                except (zipfile.BadZipFile, OSError, RuntimeError, EOFError) as e:
                    raise ArchiveFormatError(
                        f"Corrupt archive member: {info.filename}"
                    ) from e
                yield ArchiveMember(posixpath.basename(info.filename), member_data)
            if progress:
                progress(processed, total)
