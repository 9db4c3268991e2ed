"""
Tests for the wallet analytics package.

Covers:
- TTL cache and HTTP retry behaviour
- Decimal conversion and mismatch detection
- Chain clients, pagination and the chain registry
- The five aggregators and the search orchestrator
"""
