"""
CLI package for skytap-ci.
"""
