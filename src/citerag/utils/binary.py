"""Binary file detection and text file loading."""

from pathlib import Path

from citerag.errors import InputError

# Extensions that never hold plain text worth chunking
BINARY_EXTENSIONS = {
    # Images
    ".png", ".jpg", ".jpeg", ".gif", ".bmp", ".ico", ".webp", ".tiff",
    # Office documents
    ".pdf", ".doc", ".docx", ".xls", ".xlsx", ".ppt", ".pptx", ".odt", ".ods",
    # Archives
    ".zip", ".tar", ".gz", ".rar", ".7z", ".bz2", ".xz",
    # Executables and compiled
    ".exe", ".dll", ".so", ".dylib", ".bin", ".pyc", ".class", ".o", ".wasm",
    # Media
    ".mp3", ".mp4", ".avi", ".mov", ".wav", ".flac", ".mkv", ".webm",
    # Databases
    ".db", ".sqlite", ".sqlite3",
}


def is_binary_extension(path: str | Path) -> bool:
    """Check if file extension indicates binary content."""
    return Path(path).suffix.lower() in BINARY_EXTENSIONS


def is_binary_content(content: bytes, sample_size: int = 8192) -> bool:
    """Detect if content is binary by checking for null bytes and non-text chars.

    Args:
        content: Raw file content
        sample_size: Number of bytes to sample from the start

    Returns:
        True if content appears to be binary
    """
    if not content:
        return False

    sample = content[:sample_size]

    if b"\x00" in sample:
        return True

    # UTF-8 text with accents or CJK is still text
    try:
        sample.decode("utf-8")
        return False
    except UnicodeDecodeError as exc:
        # A multi-byte character cut off by the sample boundary is fine
        if exc.start >= len(sample) - 3 and len(content) > sample_size:
            return False

    text_chars = set(range(32, 127)) | {9, 10, 13}
    non_text = sum(1 for byte in sample if byte not in text_chars)

    # If more than 30% non-text, treat as binary
    return (non_text / len(sample)) > 0.30


def detect_binary(path: str | Path, content: bytes) -> bool:
    """Detect if a file is binary using both extension and content analysis."""
    if is_binary_extension(path):
        return True
    return is_binary_content(content)


def read_text_file(path: str | Path) -> tuple[str, str]:
    """Read a text document from disk.

    Returns:
        ``(text, filename)``

    Raises:
        InputError: the file is missing, unreadable or binary
    """
    file_path = Path(path)
    try:
        raw = file_path.read_bytes()
    except (FileNotFoundError, IsADirectoryError, PermissionError) as exc:
        raise InputError(f"Cannot read {file_path}: {exc}") from exc

    if detect_binary(file_path, raw):
        raise InputError(f"{file_path.name} is not a text file")

    return raw.decode("utf-8", errors="replace"), file_path.name
