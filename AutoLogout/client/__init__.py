"""
Client side of AutoLogout.
"""
