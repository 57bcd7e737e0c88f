"""Content hashing of artifact directories for change detection."""

import hashlib
from dataclasses import dataclass
from pathlib import Path

from ..errors import FilesystemError
from .assets import remote_key_for
from .crawler import crawl_directory

_CHUNK_SIZE = 1024 * 1024


@dataclass(frozen=True)
class FingerprintState:
  """Hash of a directory tree at one point in time.

  Only ever compared for equality between deploy runs.
  """

  path: str
  hash: str

  def to_dict(self) -> dict[str, str]:
    return {"path": self.path, "hash": self.hash}

  @classmethod
  def from_dict(cls, data: dict[str, str]) -> "FingerprintState":
    return cls(path=data["path"], hash=data["hash"])


def _file_digest(path: Path) -> str:
  digest = hashlib.sha256()
  try:
    with open(path, "rb") as f:
      for chunk in iter(lambda: f.read(_CHUNK_SIZE), b""):
        digest.update(chunk)
  except OSError as e:
    raise FilesystemError(f"Cannot read {path}: {e}") from e
  return digest.hexdigest()


def fingerprint_directory(path: str | Path) -> FingerprintState:
  """Hash the relative paths and contents of every file under ``path``.

  Files are visited in sorted key order, so the result does not depend on
  filesystem listing order. Adding, removing, renaming or editing any file
  changes the hash.
  """
  root = Path(path)
  files = sorted((remote_key_for(root, f), f) for f in crawl_directory(root))

  digest = hashlib.sha256()
  for key, file_path in files:
    digest.update(key.encode("utf-8"))
    digest.update(b"\0")
    digest.update(_file_digest(file_path).encode("ascii"))
    digest.update(b"\n")

  return FingerprintState(path=str(path), hash=digest.hexdigest())
