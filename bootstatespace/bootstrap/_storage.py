"""
Per-replication artifact storage.

Each replication writes its simulated panel and its fit to one file,
{path}/{prefix}{index}.npz, so a long parallel run can be inspected or
resumed and no more than one simulated panel per worker is held in
memory. Files are written to a temporary name and renamed into place,
so a crashed worker never leaves a half-written artifact under the
final name.
"""

from __future__ import annotations

import glob
import os
import warnings
import zipfile
from pathlib import Path

import numpy as np

from bootstatespace.core.exceptions import PersistenceError
from bootstatespace.ssm._common import PanelData
from bootstatespace.bootstrap._common import ReplicationResult

EXTENSION = "npz"

# Artifact keys holding ReplicationResult.fit_details entries
FIT_PREFIX = "fit_"


def _load_fit_details(npz) -> dict:
    details = {}
    for name in npz.files:
        if name.startswith(FIT_PREFIX):
            value = npz[name]
            details[name[len(FIT_PREFIX):]] = value.item() if value.ndim == 0 else value
    return details


class ReplicationStore:
    """
    Reads and writes replication artifacts under one run prefix.

    Picklable; worker processes receive a copy and write independently.
    Filenames are unique per index, so no locking is needed.
    """

    def __init__(self, path, prefix: str):
        self.path = Path(path)
        self.prefix = str(prefix)

    def filename(self, index: int) -> Path:
        """Artifact path for replication `index`."""
        return self.path / f"{self.prefix}{index}.{EXTENSION}"

    def exists(self, index: int) -> bool:
        return self.filename(index).is_file()

    def store(
        self,
        data: PanelData,
        result: ReplicationResult,
        fingerprint: str,
    ) -> Path:
        """
        Write one replication.

        Raises:
            PersistenceError: If the directory or file cannot be written.
        """
        target = self.filename(result.index)
        partial = target.with_name(target.name + ".part")
        arrays = {
            'index': np.array(result.index),
            'fingerprint': np.array(fingerprint),
            'names': np.array(result.names, dtype=str),
            'estimate': np.asarray(result.estimate, dtype=np.float64),
            'converged': np.array(result.converged),
            'diagnostic': np.array(result.diagnostic or ""),
            'has_diagnostic': np.array(result.diagnostic is not None),
            'y': data.y,
            'time': data.time,
            'delta_t': np.array(data.delta_t),
        }
        for key, value in result.fit_details.items():
            arrays[FIT_PREFIX + key] = np.asarray(value)
        if data.x is not None:
            arrays['x'] = data.x
        if data.seed is not None:
            arrays['seed'] = np.array(data.seed, dtype=np.uint64)

        try:
            self.path.mkdir(parents=True, exist_ok=True)
            with open(partial, 'wb') as fh:
                np.savez(fh, **arrays)
            os.replace(partial, target)
        except OSError as e:
            raise PersistenceError(
                f"cannot write replication {result.index} to {target}: {e}",
                path=str(target),
            ) from e
        return target

    def load(self, index: int) -> tuple[PanelData, ReplicationResult, str]:
        """
        Read one replication back.

        Returns:
            (data, result, fingerprint)

        Raises:
            PersistenceError: If the file is missing or unreadable.
        """
        source = self.filename(index)
        try:
            with np.load(source, allow_pickle=False) as npz:
                data = PanelData(
                    y=npz['y'],
                    x=npz['x'] if 'x' in npz.files else None,
                    time=npz['time'],
                    delta_t=float(npz['delta_t']),
                    seed=int(npz['seed']) if 'seed' in npz.files else None,
                )
                result = ReplicationResult(
                    index=int(npz['index']),
                    names=tuple(str(name) for name in npz['names']),
                    estimate=npz['estimate'],
                    converged=bool(npz['converged']),
                    diagnostic=(
                        str(npz['diagnostic'])
                        if bool(npz['has_diagnostic']) else None
                    ),
                    fit_details=_load_fit_details(npz),
                )
                fingerprint = str(npz['fingerprint'])
        except (OSError, KeyError, ValueError, zipfile.BadZipFile) as e:
            raise PersistenceError(
                f"cannot read replication {index} from {source}: {e}",
                path=str(source),
            ) from e

        if result.index != index:
            raise PersistenceError(
                f"{source} holds replication {result.index}, expected {index}",
                path=str(source),
            )
        return data, result, fingerprint

    def purge(self) -> int:
        """
        Remove every file matching {path}/{prefix}*.

        Best effort: files already gone are skipped, files that cannot
        be removed produce a warning.

        Returns:
            Number of files removed.
        """
        pattern = os.path.join(glob.escape(str(self.path)), glob.escape(self.prefix) + "*")
        removed = 0
        for name in glob.glob(pattern):
            try:
                os.remove(name)
            except FileNotFoundError:
                continue
            except OSError as e:
                warnings.warn(
                    f"could not remove {name}: {e}",
                    RuntimeWarning,
                    stacklevel=2,
                )
                continue
            removed += 1
        return removed

    def __repr__(self) -> str:
        return f"ReplicationStore(path={str(self.path)!r}, prefix={self.prefix!r})"
