"""
Helper Utilities Module.

Small, generic helpers shared by the input handler, exporter and CLI.

Functions:
    - ensure_directory: Create directory if it doesn't exist
    - get_file_extension: Extract file extension safely
    - format_file_size: Human-readable byte counts
    - collect_files: Gather supported documents from a path
"""

from pathlib import Path
from typing import Iterable, List, Optional, Union


def ensure_directory(path: Union[str, Path]) -> Path:
    """
    Ensure a directory exists, creating it and its parents if necessary.

    Args:
        path: Directory path to ensure exists.

    Returns:
        Path object pointing to the directory.

    Example:
        >>> ensure_directory("outputs/exports")
        PosixPath('outputs/exports')
    """
    dir_path = Path(path)
    dir_path.mkdir(parents=True, exist_ok=True)
    return dir_path


def get_file_extension(filepath: Optional[Union[str, Path]]) -> str:
    """
    Extract the lowercase extension, without the dot, from a filename.

    Args:
        filepath: Filename or path; None is treated as no extension.

    Returns:
        Lowercase extension without the dot, or "" if there is none.

    Example:
        >>> get_file_extension("scan.PDF")
        "pdf"
        >>> get_file_extension("noextension")
        ""
    """
    if not filepath:
        return ""
    return Path(str(filepath)).suffix.lower().lstrip(".")


def format_file_size(size_bytes: float) -> str:
    """
    Format a byte count in human-readable form.

    Example:
        >>> format_file_size(1536)
        "1.5 KB"
    """
    for unit in ['B', 'KB', 'MB', 'GB']:
        if size_bytes < 1024.0:
            return f"{size_bytes:.1f} {unit}"
        size_bytes /= 1024.0
    return f"{size_bytes:.1f} TB"


def collect_files(
    path: Union[str, Path],
    extensions: Iterable[str]
) -> List[Path]:
    """
    Collect supported documents from a file or directory path.

    Args:
        path: A single file or a directory (not searched recursively).
        extensions: Accepted extensions, with or without the leading dot.

    Returns:
        Sorted list of matching files. A single file is returned as-is
        when its extension is accepted, otherwise an empty list.

    Raises:
        FileNotFoundError: If the path does not exist.
    """
    path = Path(path)
    accepted = {ext.lower().lstrip(".") for ext in extensions}

    if not path.exists():
        raise FileNotFoundError(f"Input path not found: {path}")

    if path.is_file():
        return [path] if get_file_extension(path) in accepted else []

    return sorted(
        p for p in path.iterdir()
        if p.is_file() and get_file_extension(p) in accepted
    )
