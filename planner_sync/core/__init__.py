"""
Core infrastructure: logging, paths, local store
"""
