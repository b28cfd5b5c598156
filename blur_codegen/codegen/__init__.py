"""
Blur code generation module.

Emits the value_blur() source from gaussian weight tables, and parses
it back for dry-run evaluation.
"""

from blur_codegen.codegen.generator import BlurCodeGenerator, CodegenError
from blur_codegen.codegen.vm import BlurVM, BlurVMError, ParsedLevel

__all__ = ["BlurCodeGenerator", "BlurVM", "BlurVMError", "CodegenError", "ParsedLevel"]
