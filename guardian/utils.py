import logging
import os
import re
from functools import lru_cache
from typing import Iterator

logger = logging.getLogger(__name__)

MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB
BINARY_SNIFF_BYTES = 8192


@lru_cache(maxsize=256)
def glob_to_regex(pattern: str) -> re.Pattern[str]:
    """Translate a path glob into a regex matching the whole relative path.

    ``**/`` matches zero or more leading path segments, any other ``**``
    matches anything, ``*`` stays within one segment and ``?`` is a single
    non-separator character. Everything else is literal.
    """
    parts: list[str] = []
    i = 0
    while i < len(pattern):
        if pattern.startswith("**/", i):
            parts.append("(?:.*/)?")
            i += 3
        elif pattern.startswith("**", i):
            parts.append(".*")
            i += 2
        elif pattern[i] == "*":
            parts.append("[^/]*")
            i += 1
        elif pattern[i] == "?":
            parts.append("[^/]")
            i += 1
        else:
            parts.append(re.escape(pattern[i]))
            i += 1
    return re.compile("".join(parts), re.DOTALL)


def matches_glob(relative_path: str, pattern: str) -> bool:
    return glob_to_regex(pattern).fullmatch(relative_path) is not None


def to_relative(root: str, path: str) -> str:
    """Root-relative path with forward slashes."""
    return os.path.relpath(path, root).replace(os.sep, "/")


class FileSelector:
    """Walks a project root and yields files passing include/exclude globs.

    Exclude patterns are checked first and always win.
    """

    def __init__(
        self,
        root: str,
        include_patterns: list[str],
        exclude_patterns: list[str] | None = None,
    ):
        self.root = root
        self.include_patterns = list(include_patterns)
        self.exclude_patterns = list(exclude_patterns or [])

    def accepts(self, relative_path: str) -> bool:
        if any(matches_glob(relative_path, p) for p in self.exclude_patterns):
            return False
        return any(matches_glob(relative_path, p) for p in self.include_patterns)

    def __iter__(self) -> Iterator[str]:
        return self.iter_files()

    def iter_files(self) -> Iterator[str]:
        """Yield absolute paths of selected regular files. Symlink-loop safe."""
        if not os.path.isdir(self.root):
            return
        seen_inodes: set[tuple[int, int]] = set()

        for dirpath, dirnames, filenames in os.walk(self.root, followlinks=False):
            try:
                dir_stat = os.stat(dirpath)
                inode_key = (dir_stat.st_dev, dir_stat.st_ino)
                if inode_key in seen_inodes:
                    dirnames.clear()
                    continue
                seen_inodes.add(inode_key)
            except OSError:
                dirnames.clear()
                continue

            dirnames.sort()
            for fname in sorted(filenames):
                fpath = os.path.join(dirpath, fname)
                if not os.path.isfile(fpath):
                    continue
                if self.accepts(to_relative(self.root, fpath)):
                    yield fpath

    def select(self) -> list[str]:
        return list(self.iter_files())


def read_file_safe(path: str) -> str | None:
    """Read a text file up to MAX_FILE_SIZE. Returns None if unreadable or binary."""
    try:
        size = os.path.getsize(path)
        if size > MAX_FILE_SIZE:
            logger.warning("Skipping %s: exceeds 10MB limit (%d bytes)", path, size)
            return None
        with open(path, "rb") as f:
            data = f.read(MAX_FILE_SIZE)
    except OSError as e:
        logger.debug("Cannot read %s: %s", path, e)
        return None

    if b"\x00" in data[:BINARY_SNIFF_BYTES]:
        logger.debug("Skipping binary file %s", path)
        return None
    return data.decode("utf-8", errors="replace")


def split_lines(content: str) -> list[str]:
    """Split on LF only, so numbering agrees with ``line_number_at``.

    A trailing CR is dropped from each line. Form feeds and Unicode line
    separators stay inside their line.
    """
    lines = content.split("\n")
    if lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]


def count_lines(content: str) -> int:
    return len(split_lines(content))
