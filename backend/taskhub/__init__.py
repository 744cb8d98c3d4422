"""Taskhub: collaborative kanban boards for project teams."""

__version__ = "0.1.0"
