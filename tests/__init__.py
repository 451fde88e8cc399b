"""
Test suite for Directory Import Core.

Run all tests: pytest
Run unit tests only: pytest tests/unit/
Run specific file: pytest tests/unit/test_template_engine.py -v
"""
