"""Versioned, immutable stage datasets backed by RocksDB.

Each stage writes its output under a logical name (``normalized``,
``decade_ratios``, ...). Every write creates a new version directory,
``<root>/<name>/v000001``, which is committed only once all records and
metadata are flushed. The catalog database at ``<root>/_catalog`` maps each
name to its current version; swapping that single key is what replaces the
named dataset. Callers hold ``DatasetHandle`` values and pass them between
stages explicitly; ``require()`` rejects handles whose dataset is missing,
uncommitted, truncated, or no longer current.

The catalog stays open for the lifetime of the store, so RocksDB's LOCK file
keeps a second store (in this or another process) off the same root.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Iterator, List, Optional, Tuple, Union

from rocksdict import Rdict

from ngram_trends.db.metadata import (
    COUNT_KEY,
    KIND_KEY,
    LINEAGE_KEY,
    get_meta,
    is_committed,
    mark_committed,
    set_meta,
)
from ngram_trends.db.rocks import (
    is_lock_error,
    make_catalog_options,
    make_default_options,
    setup_rocksdb,
)
from ngram_trends.db.write import DEFAULT_WRITE_BATCH_SIZE, write_batch_to_db
from ngram_trends.errors import (
    IncompleteDatasetError,
    MissingDatasetError,
    PipelineBusyError,
    StaleDatasetError,
)
from ngram_trends.io.encoding import (
    RECORD_PREFIX,
    decode_record,
    encode_record,
    encode_record_key,
)
from ngram_trends.utils.cleanup import safe_remove_dir

logger = logging.getLogger(__name__)

CATALOG_DIR = "_catalog"
CURRENT_PREFIX = b"current/"
_VERSION_RX = re.compile(r"v(\d{6})")
_NAME_RX = re.compile(r"[a-z][a-z0-9_]*")

__all__ = ["DatasetHandle", "DatasetStore"]


@dataclass(frozen=True)
class DatasetHandle:
    """Reference to one committed version of a named dataset."""

    name: str
    version: int
    kind: str
    path: Path
    count: int
    """Number of records in the dataset"""

    lineage: str
    """Identifies the inputs and parameters the dataset was built from"""

    @property
    def token(self) -> str:
        return f"{self.name}@v{self.version}"


class DatasetStore:
    """Catalog of named stage datasets under a work directory."""

    def __init__(
        self,
        root: Union[str, Path],
        *,
        write_batch_size: int = DEFAULT_WRITE_BATCH_SIZE,
        keep_versions: int = 1,
    ):
        """
        Args:
            root: Directory holding the catalog and all dataset versions
            write_batch_size: Records per RocksDB write batch
            keep_versions: Committed versions retained per name (>= 1)
        """
        if write_batch_size < 1:
            raise ValueError("write_batch_size must be >= 1")
        if keep_versions < 1:
            raise ValueError("keep_versions must be >= 1")

        self.root = Path(root).expanduser()
        self.write_batch_size = write_batch_size
        self.keep_versions = keep_versions
        self._catalog: Optional[Rdict] = None

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    def open(self) -> "DatasetStore":
        if self._catalog is not None:
            return self
        self.root.mkdir(parents=True, exist_ok=True)
        try:
            self._catalog = setup_rocksdb(
                self.root / CATALOG_DIR, options=make_catalog_options(), retries=0
            )
        except Exception as exc:
            if is_lock_error(exc):
                raise PipelineBusyError(
                    f"Dataset store at {self.root} is in use by another run"
                ) from exc
            raise
        logger.info("Opened dataset store at %s", self.root)
        return self

    def close(self) -> None:
        if self._catalog is not None:
            self._catalog.close()
            self._catalog = None

    def __enter__(self) -> "DatasetStore":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def catalog(self) -> Rdict:
        if self._catalog is None:
            raise RuntimeError("DatasetStore is not open")
        return self._catalog

    # ------------------------------------------------------------------ #
    # Paths and versions
    # ------------------------------------------------------------------ #

    def version_path(self, name: str, version: int) -> Path:
        return self.root / name / f"v{version:06d}"

    def _versions_on_disk(self, name: str) -> List[int]:
        base = self.root / name
        if not base.is_dir():
            return []
        out = []
        for p in base.iterdir():
            m = _VERSION_RX.fullmatch(p.name)
            if m and p.is_dir():
                out.append(int(m.group(1)))
        return sorted(out)

    def current_version(self, name: str) -> Optional[int]:
        value = self.catalog.get(CURRENT_PREFIX + name.encode("utf-8"))
        return None if value is None else int(value.decode("utf-8"))

    def _set_current(self, name: str, version: int) -> None:
        self.catalog[CURRENT_PREFIX + name.encode("utf-8")] = str(version).encode("utf-8")

    # ------------------------------------------------------------------ #
    # Reading
    # ------------------------------------------------------------------ #

    def _open_version(self, path: Path) -> Rdict:
        return setup_rocksdb(path, options=make_default_options(create_if_missing=False))

    def _load_handle(self, name: str, version: int) -> DatasetHandle:
        path = self.version_path(name, version)
        if not path.is_dir():
            raise MissingDatasetError(f"{name}@v{version} not found at {path}")

        db = self._open_version(path)
        try:
            if not is_committed(db):
                raise IncompleteDatasetError(f"{name}@v{version} was never committed")
            kind = get_meta(db, KIND_KEY)
            count = get_meta(db, COUNT_KEY)
            lineage = get_meta(db, LINEAGE_KEY)
        finally:
            db.close()

        if kind is None or count is None or lineage is None:
            raise IncompleteDatasetError(f"{name}@v{version} is missing metadata")

        return DatasetHandle(
            name=name,
            version=version,
            kind=kind,
            path=path,
            count=int(count),
            lineage=lineage,
        )

    def current(self, name: str) -> Optional[DatasetHandle]:
        """Return the handle of the current committed version, or None."""
        version = self.current_version(name)
        if version is None:
            return None
        try:
            return self._load_handle(name, version)
        except (MissingDatasetError, IncompleteDatasetError) as exc:
            logger.warning("Ignoring unusable current dataset: %s", exc)
            return None

    def require(self, handle: DatasetHandle) -> DatasetHandle:
        """
        Validate that ``handle`` still names a complete, current dataset.

        Raises MissingDatasetError, StaleDatasetError or
        IncompleteDatasetError; all are fatal to a pipeline run.
        """
        current = self.current_version(handle.name)
        if current is None:
            raise MissingDatasetError(f"No dataset named {handle.name!r} in {self.root}")
        if current != handle.version:
            raise StaleDatasetError(
                f"{handle.token} has been replaced by {handle.name}@v{current}"
            )

        stored = self._load_handle(handle.name, handle.version)
        if stored.count != handle.count or stored.kind != handle.kind:
            raise IncompleteDatasetError(
                f"{handle.token} holds {stored.count} {stored.kind} records, "
                f"handle expects {handle.count} {handle.kind}"
            )
        return stored

    def read(self, handle: DatasetHandle) -> Iterator[Any]:
        """Validate ``handle`` and stream its records in write order."""
        self.require(handle)
        db = self._open_version(handle.path)
        seen = 0
        try:
            for key, value in db.items(from_key=RECORD_PREFIX):
                if not key.startswith(RECORD_PREFIX):
                    break
                seen += 1
                yield decode_record(handle.kind, value)
        finally:
            db.close()

        if seen != handle.count:
            raise IncompleteDatasetError(
                f"{handle.token} yielded {seen} records, expected {handle.count}"
            )

    # ------------------------------------------------------------------ #
    # Writing
    # ------------------------------------------------------------------ #

    def write(
        self,
        name: str,
        kind: str,
        records: Iterable[Any],
        *,
        lineage: str,
    ) -> DatasetHandle:
        """
        Materialize ``records`` as a new version of ``name`` and make it current.

        The previous version stays current until the new one is fully
        written and committed. On failure the partial version is removed
        and the error propagates.
        """
        if not _NAME_RX.fullmatch(name):
            raise ValueError(f"Invalid dataset name: {name!r}")

        existing = self._versions_on_disk(name)
        version = max(existing[-1] if existing else 0, self.current_version(name) or 0) + 1
        path = self.version_path(name, version)
        logger.info("Writing %s@v%d (%s)", name, version, kind)

        try:
            db = setup_rocksdb(path)
            try:
                count = self._write_records(db, kind, records)
                set_meta(db, KIND_KEY, kind)
                set_meta(db, COUNT_KEY, str(count))
                set_meta(db, LINEAGE_KEY, lineage)
                mark_committed(db)
            finally:
                db.close()
        except BaseException:
            logger.error("Writing %s@v%d failed; removing partial output", name, version)
            safe_remove_dir(path)
            raise

        self._set_current(name, version)
        handle = DatasetHandle(
            name=name, version=version, kind=kind, path=path, count=count, lineage=lineage
        )
        logger.info("Committed %s (%s records)", handle.token, f"{count:,}")
        self._prune(name, keep_from=version - self.keep_versions + 1)
        return handle

    def _write_records(self, db: Rdict, kind: str, records: Iterable[Any]) -> int:
        pending: List[Tuple[bytes, bytes]] = []
        seq = 0
        for rec in records:
            pending.append((encode_record_key(seq), encode_record(kind, rec)))
            seq += 1
            if len(pending) >= self.write_batch_size:
                write_batch_to_db(db, pending)
                pending.clear()
        write_batch_to_db(db, pending)
        return seq

    def _prune(self, name: str, keep_from: int) -> None:
        for version in self._versions_on_disk(name):
            if version < keep_from:
                path = self.version_path(name, version)
                if safe_remove_dir(path):
                    logger.debug("Pruned %s@v%d", name, version)

    def drop(self, name: str) -> None:
        """Remove every version of ``name`` and its catalog entry."""
        self.catalog.delete(CURRENT_PREFIX + name.encode("utf-8"))
        for version in self._versions_on_disk(name):
            safe_remove_dir(self.version_path(name, version))
        logger.info("Dropped dataset %s", name)
