"""Tests - Test suite for the recursion verifier."""
