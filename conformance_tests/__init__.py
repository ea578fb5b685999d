"""Conformance tests - run against a live SUT, consensus network and mirror node."""
