"""
Authentication helpers.
"""
