"""
cmarkdoc — Markdown API documentation from C source comments.

Reads Doxygen-style comments next to C declarations and renders them as a
single Markdown reference, either from the ``cmarkdoc`` command line or as
generated pages inside an MkDocs site.
"""

__version__ = "1.0.0"
