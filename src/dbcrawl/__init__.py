"""
dbcrawl - relational schema introspection and transactional write execution.
"""

__version__ = "0.1.0"
