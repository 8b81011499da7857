"""SQL file collector."""

import logging
import os
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Tuple

from ..models import SQLFile

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9]+")


class SQLFilesError(Exception):
    """The walk could not complete."""
    pass


class SearchMode(Enum):
    ALL = "all"  # every SQL file except migrations
    MIGRATIONS = "migrations"
    SPECIFIC = "specific"


@dataclass
class SearchConfig:
    root_path: str = "."
    mode: SearchMode = SearchMode.ALL
    migrations_path: str = ""  # MIGRATIONS only; default {root}/migrations
    specific_file_names: List[str] = field(default_factory=list)  # SPECIFIC only
    enable_ignore_list: bool = False
    ignore_files: List[str] = field(default_factory=list)


def is_migration_path(rel_path: str) -> bool:
    """True when a path relative to the walk root looks like a migration."""
    return "migration" in rel_path.lower()


def _raise_walk_error(error: OSError) -> None:
    raise error


def _walk_sql_files(root: str) -> Iterator[Tuple[str, str]]:
    """Yield (full path, path relative to root) of every .sql file, sorted."""
    for dirpath, dirnames, filenames in os.walk(root, onerror=_raise_walk_error):
        dirnames.sort()
        for name in sorted(filenames):
            if name.endswith(".sql"):
                full = os.path.join(dirpath, name)
                yield full, os.path.relpath(full, root)


def _dir_suffix(rel_path: str) -> str:
    rel_dir = os.path.dirname(rel_path)
    if not rel_dir:
        return "root"
    return _UNSAFE_CHARS.sub("_", rel_dir).strip("_") or "root"


def make_unique_title(titles: Dict[str, str], filename: str, rel_path: str) -> str:
    """
    Return ``filename``, or ``{stem}_{relative dir}{ext}`` when the name is taken.

    Raises:
        SQLFilesError: If the disambiguated title collides as well
    """
    if filename not in titles:
        return filename

    stem, ext = os.path.splitext(filename)
    title = f"{stem}_{_dir_suffix(rel_path)}{ext}"
    if title in titles:
        raise SQLFilesError(
            f"cannot make a unique title for {rel_path}: {title} already used by {titles[title]}"
        )
    return title


class _Accumulator:
    def __init__(self, config: SearchConfig):
        self.config = config
        self.files: List[SQLFile] = []
        self.titles: Dict[str, str] = {}

    def ignored(self, filename: str) -> bool:
        return self.config.enable_ignore_list and filename in self.config.ignore_files

    def add(self, full_path: str, rel_path: str, is_migration: bool) -> None:
        filename = os.path.basename(full_path)
        try:
            with open(full_path, "r", encoding="utf-8") as f:
                content = f.read()
        except (OSError, UnicodeDecodeError) as e:
            raise SQLFilesError(f"failed to read {full_path}: {e}") from e

        title = make_unique_title(self.titles, filename, rel_path)
        self.titles[title] = rel_path
        self.files.append(SQLFile(title=title, content=content, path=full_path, is_migration=is_migration))


def _resolve_migrations_path(config: SearchConfig) -> str:
    path = config.migrations_path.rstrip("/")
    if not path:
        return os.path.join(config.root_path, "migrations")
    if os.path.isabs(path):
        return path
    return os.path.join(config.root_path, path)


def collect_migrations(config: SearchConfig) -> List[SQLFile]:
    acc = _Accumulator(config)
    root = _resolve_migrations_path(config)
    if not os.path.isdir(root):
        raise SQLFilesError(f"migrations directory not found: {root}")

    for full, rel in _walk_sql_files(root):
        if acc.ignored(os.path.basename(full)):
            continue
        acc.add(full, rel, is_migration=True)
    return acc.files


def collect_specific_files(config: SearchConfig) -> List[SQLFile]:
    acc = _Accumulator(config)
    targets = {name.lower() for name in config.specific_file_names}

    for full, rel in _walk_sql_files(config.root_path):
        name = os.path.basename(full)
        if is_migration_path(rel) or name.lower() not in targets:
            continue
        if acc.ignored(name):
            continue
        acc.add(full, rel, is_migration=False)
    return acc.files


def collect_all_sql_files(config: SearchConfig) -> List[SQLFile]:
    acc = _Accumulator(config)

    for full, rel in _walk_sql_files(config.root_path):
        if is_migration_path(rel) or acc.ignored(os.path.basename(full)):
            continue
        acc.add(full, rel, is_migration=False)
    return acc.files


def collect_sql_files(config: SearchConfig) -> List[SQLFile]:
    """
    Collect SQL files according to ``config.mode``.

    Any unreadable file or directory aborts the whole collection.

    Raises:
        SQLFilesError: On walk/read failure or an unresolvable title collision
    """
    if not os.path.isdir(config.root_path):
        raise SQLFilesError(f"directory not found: {config.root_path}")

    try:
        if config.mode is SearchMode.MIGRATIONS:
            files = collect_migrations(config)
        elif config.mode is SearchMode.SPECIFIC:
            files = collect_specific_files(config)
        else:
            files = collect_all_sql_files(config)
    except OSError as e:
        raise SQLFilesError(f"failed to walk {config.root_path}: {e}") from e

    logger.debug(f"Collected {len(files)} SQL files from {config.root_path} ({config.mode.value})")
    return files
