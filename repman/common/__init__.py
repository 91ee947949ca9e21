"""
Shared infrastructure: process execution, paths, configuration, locking
"""
