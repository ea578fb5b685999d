"""Shared parameters for conformance tests."""
