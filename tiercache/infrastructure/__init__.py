"""
Infrastructure Module

Storage tiers and the cache manager built on them.
"""
