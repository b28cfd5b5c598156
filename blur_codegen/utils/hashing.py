"""SHA-256 fingerprints for generated source.

Two runs with the same configuration must emit byte-identical text, so
the CLI logs a digest of every output and the tests compare digests.

Usage:
    from blur_codegen.utils import hashing
    digest = hashing.sha256_string(source)
"""

import hashlib
import json
from pathlib import Path
from typing import Union


def sha256_string(s: str) -> str:
    """Compute SHA-256 hex digest (64 characters) of a UTF-8 string."""
    sha256 = hashlib.sha256()
    sha256.update(s.encode('utf-8'))
    return sha256.hexdigest()


def sha256_file(path: Union[str, Path], chunk_size: int = 1 << 20) -> str:
    """Compute SHA-256 hex digest of file contents.

    Parameters
    ----------
    path : Union[str, Path]
        File path
    chunk_size : int
        Read chunk size in bytes, default 1 MB

    Raises
    ------
    FileNotFoundError
        If file doesn't exist
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    sha256 = hashlib.sha256()
    with open(path, 'rb') as f:
        while True:
            chunk = f.read(chunk_size)
            if not chunk:
                break
            sha256.update(chunk)
    return sha256.hexdigest()


def hash_dict(d: dict) -> str:
    """Compute SHA-256 of a JSON-serializable dict with sorted keys.

    Used to fingerprint the effective generator configuration.
    """
    return sha256_string(json.dumps(d, sort_keys=True))
