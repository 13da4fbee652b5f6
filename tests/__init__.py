"""
Doctor Match test suite.

Unit tests live in tests/unit, HTTP tests in tests/integration. Database
tests run against a temporary SQLite file; Redis is patched out and chat
sessions use the in-memory fallback.

Running Tests:
    pip install -e ".[test]"
    pytest tests -v
"""
