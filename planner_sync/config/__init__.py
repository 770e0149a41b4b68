"""
Configuration loading
"""
