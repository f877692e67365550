"""
Test suite for AutoLogout.
"""
