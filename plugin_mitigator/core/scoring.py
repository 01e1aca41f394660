"""
Heuristic scoring of plugin directories.

Each signal on its own is weak; only their sum is compared against the
sweep threshold. Work is bounded by a cap on inspected files and on the
bytes read per file, since the trees being scored are untrusted.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

from .profiles import FamilyRules
from ..utils.helpers import PathLike, file_extension, is_within, normalize_extensions, read_bytes
from ..utils.logger import get_logger

logger = get_logger("scoring")

DEFAULT_MAX_FILES = 250
DEFAULT_MAX_BYTES = 60 * 1024
DEFAULT_EXTENSIONS = ("php", "json", "phtml")

# Two to five lowercase words joined by hyphens, e.g. "heavy-bossy"
WORD_SALAD_PATTERN = re.compile(r"^[a-z]+(?:-[a-z]+){1,4}$")

WORD_SALAD_TIERS = (6, 12)
KNOWN_TEXT_WEIGHT = 3


@dataclass
class DirectoryScore:
    """Accumulated heuristic evidence for one directory."""

    directory: str
    files_visited: int = 0
    word_salad_files: int = 0
    content_hit_files: int = 0
    known_text_hit: bool = False
    suspicious_subfolder: bool = False

    @property
    def breakdown(self) -> Dict[str, int]:
        """Points contributed by each signal."""
        word_salad = sum(1 for tier in WORD_SALAD_TIERS if self.word_salad_files >= tier)
        if self.content_hit_files >= 2:
            content = 2
        elif self.content_hit_files == 1:
            content = 1
        else:
            content = 0
        return {
            "word_salad": word_salad,
            "content_anchors": content,
            "known_text": KNOWN_TEXT_WEIGHT if self.known_text_hit else 0,
            "suspicious_subfolder": 1 if self.suspicious_subfolder else 0,
        }

    @property
    def total(self) -> int:
        return sum(self.breakdown.values())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "directory": self.directory,
            "files_visited": self.files_visited,
            "word_salad_files": self.word_salad_files,
            "content_hit_files": self.content_hit_files,
            "known_text_hit": self.known_text_hit,
            "suspicious_subfolder": self.suspicious_subfolder,
            "breakdown": self.breakdown,
            "total": self.total,
        }


class DirectoryScorer:
    """
    Scores a directory tree against family rules.

    Features:
    - Word-salad filename counting
    - Content anchor hits (one per file)
    - Known identifying text
    - Suspicious subfolder layout
    """

    def __init__(
        self,
        rules: FamilyRules,
        extensions: Optional[Iterable[str]] = None,
        max_files: int = DEFAULT_MAX_FILES,
        max_bytes: int = DEFAULT_MAX_BYTES,
    ):
        self.rules = rules
        self.extensions = normalize_extensions(
            extensions if extensions is not None else DEFAULT_EXTENSIONS
        )
        self.max_files = max_files
        self.max_bytes = max_bytes
        self._anchors = [a.encode("utf-8") for a in rules.content_anchors]
        self._known_texts = [t.encode("utf-8") for t in rules.known_texts]
        self._subfolders = set(rules.suspicious_subfolders)

    def _is_suspicious_subfolder(self, relative: str) -> bool:
        return any(
            relative == sub or relative.endswith("/" + sub)
            for sub in self._subfolders
        )

    def _inspect_content(self, content: bytes, score: DirectoryScore) -> None:
        for anchor in self._anchors:
            if anchor in content:
                score.content_hit_files += 1
                break

        if not score.known_text_hit:
            score.known_text_hit = any(text in content for text in self._known_texts)

    def score(self, directory: PathLike) -> DirectoryScore:
        """
        Score one directory, parents before children.

        Args:
            directory: Directory to score

        Returns:
            DirectoryScore; unreadable parts of the tree contribute nothing
        """
        root = str(directory)
        score = DirectoryScore(directory=root)

        if not os.path.isdir(root):
            return score

        def on_error(error: OSError) -> None:
            logger.debug(f"Cannot iterate {getattr(error, 'filename', root)}: {error}")

        for dirpath, dirnames, filenames in os.walk(root, onerror=on_error, followlinks=False):
            dirnames.sort()

            relative = Path(dirpath).relative_to(root).as_posix()
            if relative != "." and self._is_suspicious_subfolder(relative):
                score.suspicious_subfolder = True

            for filename in sorted(filenames):
                if score.files_visited >= self.max_files:
                    return score

                if file_extension(filename) not in self.extensions:
                    continue

                full_path = os.path.join(dirpath, filename)
                if os.path.islink(full_path) and not is_within(root, full_path):
                    continue

                score.files_visited += 1

                if WORD_SALAD_PATTERN.match(Path(filename).stem):
                    score.word_salad_files += 1

                content = read_bytes(full_path, self.max_bytes)
                if content:
                    self._inspect_content(content, score)

        return score
