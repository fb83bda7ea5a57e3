"""
WBS Platform
Blueprint registry.
"""
