"""
Gateway Adapter Test Suite

This package contains all tests for the gateway layer including:
- Unit tests for shared adapter utilities and canonical types
- Request builder and response normalizer tests per backend
- Adapter contract tests run against every registered backend
- Transport, configuration and registry tests
"""
