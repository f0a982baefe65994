"""
LLM Module

Model-service access for generating and judging candidates.

This module provides:
- Unified BaseLLMProvider interface whose complete() never raises
- OpenAI-compatible provider (OpenAI, DeepSeek, GLM) plus offline fakes
- Prompt builder for initial, corrective and judging prompts
- Retry logic with exponential backoff for transient failures
"""

__version__ = "0.1.0"
