"""
Codegen Core Module

Generate -> execute -> judge -> retry loop for verified code generation.

This module provides:
- Immutable Attempt/Session records with pure transitions
- Fenced code block extraction from model answers
- The model-backed judge and its yes/no verdict rule
- The sequential session loop and the exhaustion transcript
"""

__version__ = "0.1.0"
