"""
Template whitelist for ID document images.

An uploaded image is allowed when its 8x8 average hash is within a Hamming
distance threshold of a pre-approved template. Optional filename patterns
restrict which template may be the best match; patterns are stored per ID
type in `patterns.json` next to the templates.
"""

from __future__ import annotations

import json
import re
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, List, Union, Sequence, Any

import imagehash

from .base import BaseComponent
from ..config import Config
from ..exceptions import ValidationError, NotFoundError, DataPersistenceError
from ..utils.file_utils import iter_images, ensure_dir, safe_filename, unique_filename, atomic_write_bytes
from ..utils.hashing import average_hash

REASON_WHITELIST_EMPTY = "WHITELIST_EMPTY"
REASON_NO_PATTERN_MATCH = "NO_ALLOWED_PATTERN_MATCH"

_REGEX_FLAGS = {"i": re.IGNORECASE, "m": re.MULTILINE, "s": re.DOTALL, "x": re.VERBOSE}

PatternInput = Union[str, Sequence[str], None]


@dataclass
class WhitelistEntry:
    path: Path
    hash: imagehash.ImageHash

    @property
    def filename(self) -> str:
        return self.path.name

    def to_dict(self) -> dict[str, Any]:
        return {"file": str(self.path), "filename": self.filename, "hash": str(self.hash)}


@dataclass
class WhitelistDecision:
    allowed: bool
    best_match: Optional[str] = None
    distance: Optional[int] = None
    threshold: Optional[int] = None
    reason: Optional[str] = None
    allowed_patterns: List[str] = field(default_factory=list)
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in self.__dict__.items() if v not in (None, [])}


def split_patterns(patterns: PatternInput) -> List[str]:
    """Accept a list or a comma separated string; drop blanks."""
    if not patterns:
        return []
    if isinstance(patterns, str):
        patterns = patterns.split(",")
    return [str(p).strip() for p in patterns if str(p).strip()]


def compile_pattern(pattern: str) -> Optional[re.Pattern]:
    """
    Compile a `/body/flags` pattern. Returns None for plain substrings.

    Raises:
        re.error: invalid regular expression
    """
    last = pattern.rfind("/")
    if not (pattern.startswith("/") and last > 0):
        return None
    flags = 0
    for ch in pattern[last + 1:]:
        flags |= _REGEX_FLAGS.get(ch, 0)
    return re.compile(pattern[1:last], flags)


def matches_allowed_patterns(filename: str, patterns: Sequence[str]) -> bool:
    """True if there are no patterns or any pattern matches the filename."""
    if not patterns:
        return True
    for pattern in patterns:
        try:
            regex = compile_pattern(pattern)
        except re.error:
            continue
        if regex is not None:
            if regex.search(filename):
                return True
        elif pattern.lower() in filename.lower():
            return True
    return False


class WhitelistChecker(BaseComponent):
    """Holds the template hashes and answers `is_image_allowed`."""

    name = "voteguard.whitelist"

    def __init__(self, templates_dir: Optional[Path] = None, config: Optional[Config] = None):
        super().__init__(config)
        self.whitelist_config = self.config.whitelist
        self.templates_dir = Path(templates_dir) if templates_dir else self.config.whitelist_dir
        self._lock = threading.Lock()
        self._entries: List[WhitelistEntry] = []

    @property
    def patterns_path(self) -> Path:
        return self.templates_dir / self.whitelist_config.patterns_file

    # ------------------------------------------------------------------
    # Templates
    # ------------------------------------------------------------------

    def load(self, templates_dir: Optional[Path] = None) -> int:
        """
        (Re)load template hashes from a directory.

        Unreadable images are skipped with a warning.

        Returns:
            Number of templates loaded
        """
        if templates_dir is not None:
            self.templates_dir = Path(templates_dir)

        entries = []
        for path in iter_images(self.templates_dir):
            try:
                entries.append(WhitelistEntry(path=path, hash=average_hash(path, hash_size=8)))
            except Exception as e:
                self.log_warning(f"Skipping whitelist file {path.name}", error=e)

        with self._lock:
            self._entries = entries
        self.log_info(f"Loaded {len(entries)} whitelist templates", dir=self.templates_dir)
        return len(entries)

    def list_templates(self) -> List[WhitelistEntry]:
        with self._lock:
            return list(self._entries)

    def add_template(
        self,
        data: bytes,
        filename: str,
        id_type: Optional[str] = None,
        patterns: PatternInput = None,
    ) -> WhitelistEntry:
        """
        Store a new template image and reload.

        Raises:
            ValidationError: empty or undecodable image
        """
        if not data:
            raise ValidationError("No file uploaded", field_name="template")
        try:
            template_hash = average_hash(data, hash_size=8)
        except Exception as e:
            raise ValidationError(
                "Template is not a readable image", field_name="template", field_value=filename
            ) from e

        path = ensure_dir(self.templates_dir) / unique_filename(filename)
        atomic_write_bytes(path, data)
        if id_type and patterns:
            self.set_patterns(id_type, patterns)

        self.load()
        self.log_info("Whitelist template added", file=path.name)
        return WhitelistEntry(path=path, hash=template_hash)

    def remove_template(self, filename: str) -> None:
        """
        Delete a template and reload.

        Raises:
            ValidationError: no filename given
            NotFoundError: no such template
        """
        if not filename:
            raise ValidationError("filename required", field_name="filename")
        path = self.templates_dir / safe_filename(filename)
        if not path.is_file():
            raise NotFoundError("File not found", resource="whitelist_template", identifier=filename)
        path.unlink()
        self.load()
        self.log_info("Whitelist template removed", file=path.name)

    # ------------------------------------------------------------------
    # Patterns per ID type
    # ------------------------------------------------------------------

    def get_patterns(self, id_type: Optional[str] = None) -> Union[dict[str, List[str]], List[str]]:
        """All stored patterns, or the list for one ID type."""
        all_patterns: dict[str, List[str]] = {}
        if self.patterns_path.exists():
            try:
                all_patterns = json.loads(self.patterns_path.read_text(encoding="utf-8") or "{}")
            except (OSError, json.JSONDecodeError) as e:
                self.log_warning("Could not read whitelist patterns", error=e)
                all_patterns = {}
        if id_type is None:
            return all_patterns
        return list(all_patterns.get(id_type, []))

    def set_patterns(self, id_type: str, patterns: PatternInput) -> List[str]:
        """
        Replace the patterns stored for an ID type.

        Raises:
            ValidationError: missing id type or patterns
            DataPersistenceError: patterns file not writable
        """
        cleaned = split_patterns(patterns)
        if not id_type or not cleaned:
            raise ValidationError("idType and patterns required", field_name="patterns")

        all_patterns = self.get_patterns()
        all_patterns[id_type] = cleaned
        payload = json.dumps(all_patterns, indent=2, ensure_ascii=False).encode("utf-8")
        try:
            atomic_write_bytes(self.patterns_path, payload)
        except OSError as e:
            raise DataPersistenceError(
                f"Failed to save patterns: {e}", file_path=str(self.patterns_path), operation="save"
            ) from e
        return cleaned

    # ------------------------------------------------------------------
    # Check
    # ------------------------------------------------------------------

    def is_image_allowed(
        self,
        data: bytes,
        threshold: Optional[int] = None,
        allowed_patterns: PatternInput = None,
        id_type: Optional[str] = None,
    ) -> WhitelistDecision:
        """
        Check an image against the loaded templates.

        Args:
            data: Encoded image bytes
            threshold: Maximum Hamming distance (default from config)
            allowed_patterns: Filename patterns the best match must satisfy
            id_type: Use the patterns stored for this ID type when no
                explicit patterns are given

        Returns:
            WhitelistDecision; never raises
        """
        if threshold is None:
            threshold = self.whitelist_config.hamming_threshold

        entries = self.list_templates()
        if not entries:
            return WhitelistDecision(allowed=False, reason=REASON_WHITELIST_EMPTY, threshold=threshold)

        patterns = split_patterns(allowed_patterns)
        if not patterns and id_type:
            patterns = self.get_patterns(id_type)

        try:
            image_hash = average_hash(data, hash_size=8)
        except Exception as e:
            self.log_warning("Whitelist check could not hash image", error=e)
            return WhitelistDecision(allowed=False, threshold=threshold, error=str(e) or type(e).__name__)

        best = min(entries, key=lambda entry: image_hash - entry.hash)
        distance = int(image_hash - best.hash)

        if patterns and not matches_allowed_patterns(best.filename, patterns):
            return WhitelistDecision(
                allowed=False,
                best_match=str(best.path),
                distance=distance,
                threshold=threshold,
                reason=REASON_NO_PATTERN_MATCH,
                allowed_patterns=patterns,
            )

        return WhitelistDecision(
            allowed=distance <= threshold,
            best_match=str(best.path),
            distance=distance,
            threshold=threshold,
            allowed_patterns=patterns,
        )
