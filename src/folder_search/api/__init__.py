"""Folder Search API.

REST surface over an ``IndexSession``: build, search, status, messages
and configuration.
"""
