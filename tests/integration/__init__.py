"""
Integration tests for RecordStore.

These tests verify that all components work together correctly,
including bulk loading, indexed queries, filters and change tracking.
"""
