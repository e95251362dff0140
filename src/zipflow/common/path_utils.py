"""Path utilities for turning archive entry names into filesystem paths."""

import unicodedata
from pathlib import Path, PurePosixPath


def normalize_path(path: Path | str) -> str:
    """
    Normalize a path for consistent comparison.

    Applies:
    - Unicode NFC normalization (canonical composition)
    - Forward slash conversion, since ZIP entry names always use '/'

    Args:
        path: Path object or string to normalize

    Returns:
        Normalized path string with forward slashes and NFC Unicode normalization

    Examples:
        >>> normalize_path("café/résumé.txt")
        'café/résumé.txt'
        >>> normalize_path(r"docs\\notes.txt")
        'docs/notes.txt'
    """
    normalized = unicodedata.normalize('NFC', str(path))
    return normalized.replace('\\', '/')


def safe_join(target_dir: Path, entry_name: str) -> Path:
    """
    Resolve an archive entry name below a target directory.

    Entry names come from untrusted archives, so absolute names, drive
    letters and '..' components are rejected instead of being followed.

    Args:
        target_dir: Directory entries are extracted into
        entry_name: Entry name as stored in the archive

    Returns:
        Path inside target_dir

    Raises:
        ValueError: If the name would escape target_dir
    """
    name = normalize_path(entry_name)
    pure = PurePosixPath(name)

    if pure.is_absolute() or (pure.parts and pure.parts[0].endswith(':')):
        raise ValueError(f"Absolute entry name not allowed: {entry_name!r}")
    if '..' in pure.parts:
        raise ValueError(f"Entry name escapes target directory: {entry_name!r}")

    parts = [part for part in pure.parts if part not in ('', '.')]
    if not parts:
        raise ValueError(f"Empty entry name: {entry_name!r}")

    return target_dir.joinpath(*parts)
