"""
Document Processing Package
════════════════════════════

Turns an uploaded PDF into clean text for the study aid builders:

  Native text layer → (scanned?) OCR → cleanup → fixed-size slicing

Modules
───────
  ocr.py        Strategy pattern for text extraction (PyMuPDF → Tesseract | Unstructured)
  extractor.py  Orchestrator that selects the correct extraction strategy
  chunking.py   Fixed-size slicing for the chunked summary pipeline
"""

from studyaids.processing.chunking import split_fixed
from studyaids.processing.extractor import ExtractionResult, TextExtractorOrchestrator, clean_text

__all__ = [
    "ExtractionResult",
    "TextExtractorOrchestrator",
    "clean_text",
    "split_fixed",
]
