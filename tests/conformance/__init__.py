"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the engine.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. solvency.py - No operation leaves its caller below the minimum health factor
2. atomicity.py - Every entry point is all-or-nothing
3. conservation.py - Custody matches positions, supply matches debt
4. concurrency.py - Serialized mutation, rejected re-entry

These tests use hypothesis for property-based testing.
"""
