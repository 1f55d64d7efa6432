"""
Atomic file replacement — write to a temp file, then rename.

Readers of a ManagedFile only ever observe the old content or the new
content. The temp file lives in the target's directory so the final
``os.replace`` never crosses a filesystem boundary, and its name comes
from ``tempfile.mkstemp`` so concurrent writers never collide.

If anything goes wrong before the rename (including Ctrl-C), the temp
file is removed and the target is left byte-for-byte unchanged.
"""

from __future__ import annotations

import logging
import os
import stat
import tempfile
from pathlib import Path
from typing import BinaryIO, Callable, Union

logger = logging.getLogger(__name__)

Producer = Callable[[BinaryIO], None]
Payload = Union[bytes, str, Producer]


def _default_mode() -> int:
    """Permission bits a plain ``open(..., "w")`` would have produced."""
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask


def resolve_target(path: Path) -> Path:
    """Follow a symlinked target so the link itself survives the rewrite."""
    if path.is_symlink():
        return path.resolve()
    return path


def atomic_write(path: Path, data: Payload, mode: int | None = None) -> Path:
    """Atomically replace ``path`` with ``data``.

    Args:
        path: Target file. Parent directories are created.
        data: Bytes, text (written as UTF-8), or a producer that receives
            the open binary temp file and streams content into it.
        mode: Permission bits for the result. Defaults to the existing
            target's bits, or the umask default for a new file.

    Returns:
        The path that was actually written (differs from ``path`` when
        ``path`` is a symlink).
    """
    target = resolve_target(Path(path))
    target.parent.mkdir(parents=True, exist_ok=True)

    if mode is None:
        try:
            mode = stat.S_IMODE(target.stat().st_mode)
        except FileNotFoundError:
            mode = _default_mode()

    fd, tmp_name = tempfile.mkstemp(
        dir=target.parent,
        prefix=f".{target.name}.",
        suffix=".tmp",
    )
    tmp = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as f:
            if callable(data):
                data(f)
            elif isinstance(data, str):
                f.write(data.encode("utf-8"))
            else:
                f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(tmp, mode)
        os.replace(tmp, target)
        logger.debug("Atomically wrote %s", target)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise

    return target
