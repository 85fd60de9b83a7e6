"""
gh-md-sync: Mirror remote issues as local JSON + Markdown files.

This package keeps a directory of per-issue metadata and body files in
step with a remote issue tracker, pulling remote changes down and pushing
local edits back up while preserving local-only metadata.
"""

__version__ = "1.0.0"
