"""
Infrastructure Module

Store-facing implementations: the Redis client and the cache-aside engine
built on it.
"""
