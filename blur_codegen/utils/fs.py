"""YAML loading and atomic text output.

Provides:
    - load_yaml(): safe YAML parsing for configuration files
    - atomic_write_text(): tmp file -> fsync -> rename, so a build step
      watching the output path never compiles a half-written file

Usage:
    from blur_codegen.utils import fs
    data = fs.load_yaml("blur.yaml")
    fs.atomic_write_text("generated/value_blur.rsh", source)
"""

import os
from pathlib import Path
from typing import Any, Dict, Union

import yaml


def ensure_dir(p: Union[str, Path]) -> Path:
    """Create directory *p* (and parents) if needed and return it as a Path."""
    p = Path(p)
    p.mkdir(parents=True, exist_ok=True)
    return p


def load_yaml(path: Union[str, Path]) -> Dict[str, Any]:
    """Load YAML file safely.

    Parameters
    ----------
    path : Union[str, Path]
        YAML file path

    Returns
    -------
    Dict[str, Any]
        Parsed YAML content (``None`` for an empty document)

    Raises
    ------
    FileNotFoundError
        If file doesn't exist
    yaml.YAMLError
        If YAML parsing fails
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"YAML file not found: {path}")

    try:
        with open(path, 'r', encoding='utf-8') as f:
            return yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise yaml.YAMLError(f"Failed to parse YAML file {path}: {e}") from e


def atomic_write_bytes(
    path: Union[str, Path],
    data: bytes,
    tmp_suffix: str = ".tmp"
) -> None:
    """Write bytes to *path* atomically.

    The temporary file lives in the target directory so the final
    rename never crosses a filesystem boundary.

    Raises
    ------
    RuntimeError
        If writing or renaming fails; the temporary file is removed
    """
    path = Path(path)
    ensure_dir(path.parent)
    tmp_path = path.with_suffix(path.suffix + tmp_suffix)

    try:
        with open(tmp_path, 'wb') as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        tmp_path.replace(path)
    except OSError as e:
        if tmp_path.exists():
            tmp_path.unlink()
        raise RuntimeError(f"Failed to write {path} atomically: {e}") from e


def atomic_write_text(
    path: Union[str, Path],
    text: str,
    encoding: str = "utf-8"
) -> None:
    """Write text to file atomically (see ``atomic_write_bytes``)."""
    atomic_write_bytes(path, text.encode(encoding))
