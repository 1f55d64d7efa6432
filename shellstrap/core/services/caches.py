"""
Cache relocation step — move heavy caches to the shared local volume.

The home directory is small; ~/.cache/<tool> and a few data dirs are
relinked to /local/$USER/... and stay linked across re-runs.
"""

from __future__ import annotations

import logging
from pathlib import Path

from shellstrap.core.engine.executor import StepContext
from shellstrap.core.errors import DataIntegrityRisk
from shellstrap.core.models.config import BootstrapConfig
from shellstrap.core.models.receipt import Receipt
from shellstrap.core.models.state import CacheLinkState, LinkResult
from shellstrap.core.mutation.linker import ensure_linked, link_state

logger = logging.getLogger(__name__)


def shared_volume(config: BootstrapConfig) -> Path:
    """The mount point that must exist before anything is relinked."""
    base = config.shared_base
    return Path(*base.parts[:2])


def cache_link_states(config: BootstrapConfig) -> list[tuple[Path, Path, CacheLinkState]]:
    return [(orig, target, link_state(orig, target)) for orig, target in config.cache_links()]


def ensure_cache_symlinks(ctx: StepContext) -> Receipt:
    cfg = ctx.config
    logger.info("Ensuring caches are symlinked to %s ...", cfg.shared_base)

    volume = shared_volume(cfg)
    if not volume.is_dir():
        logger.warning("%s does not exist; skipping cache symlinks.", volume)
        return Receipt.skip("cache-symlinks", f"{volume} does not exist")

    results: list[LinkResult] = []
    errors: list[str] = []
    for original, target in cfg.cache_links():
        try:
            results.append(ensure_linked(original, target))
        except (DataIntegrityRisk, OSError) as e:
            logger.error("Cannot relink %s: %s (source left intact)", original, e)
            errors.append(f"{original}: {e}")

    metadata = {"links": [r.to_dict() for r in results]}
    if errors:
        return Receipt.failure("cache-symlinks", "; ".join(errors), metadata=metadata)

    changed = sum(1 for r in results if r.action in ("linked", "migrated"))
    return Receipt.success("cache-symlinks", f"{changed} linked, {len(results) - changed} unchanged", metadata=metadata)
