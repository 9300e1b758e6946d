"""
RSS reader core package.

This package currently focuses on feed administration. It exposes
dataclasses for feed records and the category tree, the tree builder and
reorder resolution used by the settings surface, a debounced persistence
coordinator, and the feed store behind the admin API.
"""
