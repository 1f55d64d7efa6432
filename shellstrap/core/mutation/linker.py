"""
TreeLinker — move a bulky directory to shared storage, leave a symlink.

The local home drive is small; caches (pip, uv, huggingface, ...) are
relocated under the shared base and linked back. The one outcome that
must never happen is deleting the original before its copy is verified,
so the order is always:

    copy → verify every file → remove original → link

A failed copy or verification raises ``DataIntegrityRisk`` with the
original still in place; both copies may be left behind, never neither.
"""

from __future__ import annotations

import hashlib
import logging
import os
import shutil
import uuid
from pathlib import Path

from shellstrap.core.errors import DataIntegrityRisk
from shellstrap.core.models.state import CacheLinkState, LinkResult

logger = logging.getLogger(__name__)


def _digest(path: Path) -> str:
    h = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(1 << 20), b""):
            h.update(chunk)
    return h.hexdigest()


def _points_at(link: Path, target: Path) -> bool:
    if not link.is_symlink():
        return False
    if os.readlink(link) == str(target):
        return True
    try:
        return link.resolve() == target.resolve()
    except OSError:
        return False


def link_state(original: Path, target: Path) -> CacheLinkState:
    """Classify the (original, target) pair without changing anything."""
    original, target = Path(original), Path(target)
    if original.is_symlink():
        if _points_at(original, target) and target.is_dir() and os.access(target, os.W_OK):
            return CacheLinkState.LINKED
        return CacheLinkState.BROKEN
    if original.is_dir():
        return CacheLinkState.UNLINKED_WITH_DATA
    if original.exists():
        return CacheLinkState.BROKEN
    return CacheLinkState.ABSENT


def copy_tree_verified(source: Path, dest: Path) -> int:
    """Copy ``source`` contents into ``dest`` and verify every file.

    Permissions and timestamps are preserved; symlinks are copied as
    links. Returns the number of regular files verified.

    Raises:
        DataIntegrityRisk: the copy failed or a file differs afterwards.
    """
    try:
        shutil.copytree(source, dest, symlinks=True, dirs_exist_ok=True)
    except (shutil.Error, OSError) as e:
        raise DataIntegrityRisk(f"Copy {source} -> {dest} failed: {e}") from e

    verified = 0
    for root, dirs, files in os.walk(source):
        rel_root = Path(root).relative_to(source)
        for name in [*dirs, *files]:
            src = Path(root) / name
            dst = dest / rel_root / name
            if src.is_symlink():
                if not dst.is_symlink() or os.readlink(dst) != os.readlink(src):
                    raise DataIntegrityRisk(f"Symlink not copied: {src}")
            elif src.is_file():
                if not dst.is_file() or dst.is_symlink():
                    raise DataIntegrityRisk(f"File missing after copy: {dst}")
                if src.stat().st_size != dst.stat().st_size or _digest(src) != _digest(dst):
                    raise DataIntegrityRisk(f"Content mismatch after copy: {dst}")
                verified += 1
    return verified


def _replace_with_link(original: Path, target: Path) -> None:
    # ln -sfn, but atomic: build the link beside the original, then rename.
    tmp = original.with_name(f".{original.name}.{uuid.uuid4().hex[:8]}.lnk")
    os.symlink(target, tmp, target_is_directory=True)
    try:
        os.replace(tmp, original)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise


def ensure_linked(original: Path, target: Path, dry_run: bool = False) -> LinkResult:
    """Make ``original`` a symlink to ``target``, migrating any data first.

    Returns a LinkResult whose action is one of ``already-linked``,
    ``linked``, ``migrated``, ``skipped`` (target unusable, advisory) or
    ``planned`` (dry run).

    Raises:
        DataIntegrityRisk: the migration copy could not be verified, or a
            non-directory file sits at ``original``.
    """
    original, target = Path(original), Path(target)
    result = LinkResult(original=str(original), target=str(target))

    if dry_run:
        result.action = "planned"
        result.message = link_state(original, target).value
        return result

    try:
        target.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.warning("Cannot create %s (skipping): %s", target, e)
        result.action = "skipped"
        result.message = str(e)
        return result
    if not os.access(target, os.W_OK):
        logger.warning("Not writable: %s (skipping)", target)
        result.action = "skipped"
        result.message = "target not writable"
        return result

    if _points_at(original, target):
        result.action = "already-linked"
        return result

    if original.is_dir() and not original.is_symlink():
        logger.info("Migrating existing data: %s -> %s", original, target)
        result.files_copied = copy_tree_verified(original, target)
        shutil.rmtree(original)
        result.action = "migrated"
    elif original.exists() and not original.is_symlink():
        raise DataIntegrityRisk(f"{original} exists and is not a directory; refusing to replace it")

    original.parent.mkdir(parents=True, exist_ok=True)
    _replace_with_link(original, target)
    if not result.action:
        result.action = "linked"
    logger.info("Linked: %s -> %s", original, target)
    return result
