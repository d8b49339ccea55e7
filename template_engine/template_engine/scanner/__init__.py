"""SQL file discovery and fingerprinting."""

from template_engine.scanner.file_scanner import FileScanner, ScanError, hash_bytes

__all__ = [
    "FileScanner",
    "ScanError",
    "hash_bytes",
]
