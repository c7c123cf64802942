"""Document loading and paragraph chunking for the ingestion pipeline."""

import re
from pathlib import Path

import pypdf

from .config import config
from .models import DocumentChunk

logger = config.get_logger(__name__)

SUPPORTED_SUFFIXES = frozenset({".pdf", ".txt"})
PARAGRAPH_BREAK = re.compile(r"\n{2,}")


def find_documents(directory: Path) -> list[Path]:
    """Recursively collect supported documents below a directory.

    Returns:
        Sorted document paths; empty when the directory does not exist.
    """
    if not directory.is_dir():
        logger.warning("Document directory not found: %s", directory)
        return []
    return sorted(
        path
        for path in directory.rglob("*")
        if path.is_file() and path.suffix.lower() in SUPPORTED_SUFFIXES
    )


class DocumentLoader:
    """Handles loading of PDF and TXT documents."""

    @staticmethod
    def load_pdf(file_path: Path) -> str:
        """Load text content from a PDF file, one blank line between pages.

        Returns:
            The extracted text content from the PDF as a string.
        """
        try:
            with file_path.open("rb") as file:
                pdf_reader = pypdf.PdfReader(file)
                pages = [page.extract_text() or "" for page in pdf_reader.pages]
        except Exception:
            logger.exception("Error loading PDF %s", file_path)
            raise
        else:
            return "\n\n".join(pages)

    @staticmethod
    def load_txt(file_path: Path) -> str:
        """Load text content from a TXT file.

        Returns:
            The extracted text content from the TXT file as a string.
        """
        try:
            text = file_path.read_text(encoding="utf-8")
        except Exception:
            logger.exception("Error loading TXT %s", file_path)
            raise
        else:
            return text

    @classmethod
    def load_document(cls, file_path: Path) -> str:
        """Load document based on file extension.

        Args:
            file_path: Path to the document file.

        Returns:
            The text content of the document as a string.

        Raises:
            ValueError: If the file type is not supported.
        """
        file_ext = file_path.suffix.lower()
        if file_ext == ".pdf":
            return cls.load_pdf(file_path)
        if file_ext == ".txt":
            return cls.load_txt(file_path)
        msg = f"Unsupported file type: {file_ext}"
        raise ValueError(msg)


class ParagraphChunker:
    """Splits text into paragraph chunks on blank-line boundaries."""

    @staticmethod
    def chunk_text(
        text: str,
        source: str = "document",
        jurisdiction: str | None = None,
    ) -> list[DocumentChunk]:
        """Split text on runs of two or more newlines.

        Args:
            text: Extracted document text.
            source: Document name, used as the first half of the chunk key.
            jurisdiction: Jurisdiction directory the document was found in.

        Returns:
            Trimmed, non-empty chunks numbered from zero in document order.
        """
        paragraphs = [
            paragraph.strip() for paragraph in PARAGRAPH_BREAK.split(text)
        ]
        chunks = [
            DocumentChunk(
                content=paragraph,
                metadata={
                    "source": source,
                    "chunk_index": index,
                    "jurisdiction": jurisdiction,
                },
            )
            for index, paragraph in enumerate(p for p in paragraphs if p)
        ]
        logger.info("Text from %s split into %d chunks", source, len(chunks))
        return chunks
