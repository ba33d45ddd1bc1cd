"""
Storage for rendered resume documents.
"""

from __future__ import annotations

import abc as _abc
import pathlib as _pathlib

import cvwriter.errors as errors


class ArtifactStore(_abc.ABC):
    """Durable storage for rendered documents, addressed by name."""

    @_abc.abstractmethod
    def store(self, data: bytes, name: str) -> None:
        """Store `data` under `name`, replacing any previous document."""
        ...

    @_abc.abstractmethod
    def load(self, name: str) -> bytes:
        """Return the document stored under `name`."""
        ...

    @_abc.abstractmethod
    def delete(self, name: str) -> None:
        """Remove the document stored under `name`. Missing documents are ignored."""
        ...


class FilesystemArtifactStore(ArtifactStore):
    """
    Keeps each document as a file in one directory.

    All failures surface as ArtifactStoreError.
    """

    def __init__(self, artifacts_dir: _pathlib.Path) -> None:
        self.artifacts_dir = artifacts_dir

    def _artifact_path(self, name: str) -> _pathlib.Path:
        # Names are generated by the service, but never trust a path component
        if not name or name != _pathlib.PurePath(name).name or name.startswith("."):
            raise errors.ArtifactStoreError(f"Invalid artifact name: '{name}'")
        return self.artifacts_dir / name

    def store(self, data: bytes, name: str) -> None:
        path = self._artifact_path(name)
        try:
            self.artifacts_dir.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as e:
            raise errors.ArtifactStoreError(f"Cannot store artifact {name}: {e}") from e

    def load(self, name: str) -> bytes:
        path = self._artifact_path(name)
        try:
            return path.read_bytes()
        except FileNotFoundError as e:
            raise errors.ArtifactStoreError(f"Artifact not found: {name}") from e
        except OSError as e:
            raise errors.ArtifactStoreError(f"Cannot load artifact {name}: {e}") from e

    def delete(self, name: str) -> None:
        path = self._artifact_path(name)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise errors.ArtifactStoreError(f"Cannot delete artifact {name}: {e}") from e
