"""
Core Module

Configuration, exceptions, logging and interfaces shared by the cache-aside
engine.
"""
