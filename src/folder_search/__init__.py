"""Folder Search - incremental full-text indexing of a directory tree.

A three-stage pipeline (change detection, extraction, index write) keeps a
full-text index in step with the files under a root directory:
- Content-hash change detection against the last committed build
- Extraction of text and metadata from changed files only
- Add/update/delete of index documents with a single commit
- Ranked queries against the committed index
"""

__version__ = "0.1.0"
__author__ = "Folder Search Team"
