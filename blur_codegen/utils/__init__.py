"""Cross-cutting utilities (lowest dependency layer).

This package provides shared primitives for:
    - Atomic output and YAML loading (fs)
    - Fingerprinting generated source (hashing)
    - Unified logging (logging_config)

No module in utils/ may import from kernel, codegen or configs.

Convenience imports:
    from blur_codegen.utils import fs, hashing
    from blur_codegen.utils.logging_config import setup_logging, push_context
"""

from . import fs
from . import hashing
from . import logging_config

from .logging_config import push_context, setup_logging

__all__ = [
    'fs',
    'hashing',
    'logging_config',
    'setup_logging',
    'push_context',
]
