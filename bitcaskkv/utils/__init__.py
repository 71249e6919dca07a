"""Helpers for directory sizes and copies, float encoding and test data."""