"""
Files module - deduplicated, reference counted file storage.

Identical content is stored once. Every upload of the same bytes adds a
reference to the existing file; the file is removed when its last
reference is released.
"""
