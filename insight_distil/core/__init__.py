"""
Core functionality for the Insight Distiller.

This package contains the main logic for:
- Framework template lookup
- Prompt assembly within a token budget
- Streaming generation with chunk accumulation
- Resilient extraction of the structured insight
- The staged pipeline that ties them together
"""
