"""
Entry points used by the command line interface.
"""
