"""
Service Module

Outer surfaces around the generation loop.

This module provides:
- YAML-backed ServiceConfig
- The {apiKey, prompt} -> {code} request boundary
- A typer CLI for generating code and running the sandbox by hand
"""

__version__ = "0.1.0"
