"""Document source implementations."""

from ragdesk.providers.documents.filesystem_source import FilesystemDocumentSource

__all__ = ["FilesystemDocumentSource"]
