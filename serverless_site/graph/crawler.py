"""Recursive directory crawl over build artifacts."""

import os
from collections.abc import Iterator
from pathlib import Path

from ..errors import FilesystemError


def crawl_directory(root: str | Path) -> Iterator[Path]:
  """Yield the absolute path of every regular file under ``root``.

  Subdirectories are descended recursively. A symlink pointing at a
  directory is never followed, so symlink cycles cannot occur; a symlink
  pointing at a file is yielded like a file. Sibling order is whatever the
  filesystem lists, so callers must not rely on it.

  Raises:
    FilesystemError: If ``root`` or any directory below it can't be listed.
      The crawl stops at the first failure.
  """
  directory = Path(root).absolute()
  try:
    with os.scandir(directory) as entries:
      children = list(entries)
  except OSError as e:
    raise FilesystemError(f"Cannot read directory {directory}: {e}") from e

  for entry in children:
    try:
      is_dir = entry.is_dir(follow_symlinks=False)
      is_file = not is_dir and entry.is_file()
    except OSError as e:
      raise FilesystemError(f"Cannot stat {entry.path}: {e}") from e

    if is_dir:
      yield from crawl_directory(entry.path)
    elif is_file:
      yield Path(entry.path)
