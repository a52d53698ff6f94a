# HybridVault Test Suite
"""
Test suite including:
- Unit tests per component
- Integration tests through the wired services and CLI
- Security tests (tampering, traversal, secret leakage)

Run with: pytest
"""
