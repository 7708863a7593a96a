# tests/property/__init__.py
"""Property-based tests for FieldTrace.

Property-based testing validates invariants that must hold for ALL inputs,
not just the specific examples we think of. Lineage that is silently wrong
has no crash to catch it, so classification and composition rules are
checked against generated pipelines here.

Test categories:
- core/: Validation classification, composition, walks, fingerprints
"""
