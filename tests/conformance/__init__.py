"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the token ledger.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. conservation.py - Balances always sum to total supply
2. atomicity.py - All-or-nothing transaction semantics
3. idempotency.py - Repeated association leaves state unchanged
4. determinism.py - Reproducible ids, state and replay

These tests use hypothesis for property-based testing.
"""
