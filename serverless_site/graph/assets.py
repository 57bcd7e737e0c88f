"""Map build artifact files to S3 object keys."""

import logging
import mimetypes
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

from .crawler import crawl_directory

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AssetRecord:
  """One local file and the S3 object it is uploaded to."""

  local_path: Path
  remote_key: str
  content_type: str | None = None


def remote_key_for(root: str | Path, file_path: str | Path) -> str:
  """Object key for ``file_path``: its path relative to ``root``, POSIX style."""
  return Path(file_path).relative_to(Path(root).absolute()).as_posix()


def plan_assets(root: str | Path) -> Iterator[AssetRecord]:
  """Yield an upload record for every file under ``root``.

  Keys are unique within a root since they are relative paths. The content
  type is guessed from the file extension and left unset when unknown.
  """
  logger.info("Syncing contents from local disk at %s", root)
  for file_path in crawl_directory(root):
    content_type, _ = mimetypes.guess_type(file_path.name)
    yield AssetRecord(
      local_path=file_path,
      remote_key=remote_key_for(root, file_path),
      content_type=content_type,
    )
