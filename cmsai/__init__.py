"""Multi-provider LLM chat and automode orchestration for CMS code generation."""

__version__ = "0.1.0"
