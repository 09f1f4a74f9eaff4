"""
Book metadata lookup.

Provides the Google Books integration that supplies titles, authors,
descriptions and cover images for tracked books.
"""

from .google_books import GoogleBooksProvider, MetadataProvider, is_valid_book_details

__all__ = ["GoogleBooksProvider", "MetadataProvider", "is_valid_book_details"]
