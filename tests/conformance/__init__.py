"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the lending ledger.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. collateral_properties.py - Requirement monotonicity and the admission law
2. repayment_properties.py - Settlement arithmetic and no forgiven interest
3. atomicity.py - All-or-nothing operations and desk calls
4. sequence.py - Loan id uniqueness and journal ordering
5. conservation.py - Custody balances always match ledger state

These tests use hypothesis for property-based testing.
"""
