"""
Test suite for the Insight Distiller.

This package contains tests for all core functionality including:
- Type definitions and stage events
- Framework registry lookups
- Prompt assembly and token budgeting
- Chunk accumulation and structured extraction
- The staged pipeline, including cancellation
- Configuration, speech validation and the CLI
"""
