"""
Test suite for netsales schema reconciliation.

Unit tests run against mocked pools or the in-memory catalog in conftest.
"""
