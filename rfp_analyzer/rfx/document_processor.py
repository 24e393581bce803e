#!/usr/bin/env python3
# CUI // SP-PROPIN
"""Document processor: extract text from uploaded RFP files and store it.

Supports PDF (via pypdf), Word (via python-docx), Excel (via openpyxl),
OpenDocument text/spreadsheet (content.xml read from the zip container),
and plain text. Extraction failures come back as an inline error string
so one bad file does not fail a batch upload.
"""

import logging
import os
import uuid
import zipfile
from datetime import datetime, timezone
from functools import partial
from pathlib import Path
from typing import Optional
from xml.etree import ElementTree

from rfp_analyzer.storage import file_manager

logger = logging.getLogger("rfp_analyzer.rfx.document_processor")

BASE_DIR = Path(__file__).resolve().parent.parent.parent
UPLOAD_DIR = Path(os.environ.get(
    "RFP_ANALYZER_UPLOAD_DIR", str(BASE_DIR / "data" / "uploads")
))

ALLOWED_EXTENSIONS = {".pdf", ".doc", ".docx", ".odt", ".ods", ".xlsx", ".xls", ".txt"}
MAX_UPLOAD_BYTES = 50 * 1024 * 1024
PREVIEW_CHARS = 500

_ODF_TEXT_NS = "urn:oasis:names:tc:opendocument:xmlns:text:1.0"
_ODF_TABLE_NS = "urn:oasis:names:tc:opendocument:xmlns:table:1.0"


def allowed_file(filename: str) -> bool:
    return Path(filename or "").suffix.lower() in ALLOWED_EXTENSIONS


# ── text extraction ────────────────────────────────────────────────────────────

def _extract_pdf(path: Path) -> str:
    try:
        from pypdf import PdfReader
        reader = PdfReader(str(path))
        pages = [page.extract_text() or "" for page in reader.pages]
        return "\n\n".join(pages)
    except Exception as e:
        return f"[PDF extraction error: {e}]"


def _extract_docx(path: Path) -> str:
    try:
        from docx import Document
        doc = Document(str(path))
        paragraphs = [p.text for p in doc.paragraphs if p.text.strip()]
        for table in doc.tables:
            for row in table.rows:
                cells = [c.text.strip() for c in row.cells]
                if any(cells):
                    paragraphs.append(" | ".join(cells))
        return "\n\n".join(paragraphs)
    except Exception as e:
        return f"[DOCX extraction error: {e}]"


def _cell_text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.isoformat()
    text = str(value)
    if "," in text or '"' in text:
        text = '"' + text.replace('"', '""') + '"'
    return text


def _extract_xlsx(path: Path) -> str:
    """Per-sheet CSV-like text behind a workbook summary. Empty sheets are skipped."""
    try:
        from openpyxl import load_workbook
        wb = load_workbook(str(path), read_only=True, data_only=True)
        try:
            sheet_names = list(wb.sheetnames)
            sheets = []
            for name in sheet_names:
                rows = []
                col_count = 0
                for row in wb[name].iter_rows(values_only=True):
                    cells = [_cell_text(v) for v in row]
                    while cells and cells[-1] == "":
                        cells.pop()
                    if not cells:
                        continue
                    col_count = max(col_count, len(cells))
                    rows.append(",".join(cells))
                if rows:
                    sheets.append((name, rows, col_count))
        finally:
            wb.close()
    except Exception as e:
        return f"[XLSX extraction error: {e}]"

    if not sheets:
        return "[XLSX extraction error: workbook contains no readable data]"

    lines = [
        "Excel File Analysis:",
        f"Total Sheets: {len(sheet_names)}",
        f"Sheets with Data: {len(sheets)}",
        f"Sheet Names: {', '.join(s[0] for s in sheets)}",
        "",
        "Sheet Summary:",
    ]
    lines += [f"- {name}: {len(rows)} rows, {cols} columns" for name, rows, cols in sheets]
    lines.append("")
    lines.append("Content:")
    for name, rows, _ in sheets:
        lines.append(f"\n=== Sheet: {name} ===")
        lines.extend(rows)
    return "\n".join(lines)


def _odf_node_text(node) -> str:
    parts = [node.text or ""]
    for child in node:
        tag = child.tag.split("}")[-1]
        if tag == "s":
            parts.append(" " * int(child.get(f"{{{_ODF_TEXT_NS}}}c", "1")))
        elif tag == "tab":
            parts.append("\t")
        elif tag == "line-break":
            parts.append("\n")
        else:
            parts.append(_odf_node_text(child))
        parts.append(child.tail or "")
    return "".join(parts)


def _extract_odf(path: Path, spreadsheet: bool = False) -> str:
    """Text paragraphs and headings (.odt) or table rows (.ods) from content.xml."""
    try:
        with zipfile.ZipFile(str(path)) as zf:
            root = ElementTree.fromstring(zf.read("content.xml"))
    except (zipfile.BadZipFile, KeyError, ElementTree.ParseError, OSError) as e:
        return f"[ODF extraction error: {e}]"

    lines = []
    if spreadsheet:
        for table in root.iter(f"{{{_ODF_TABLE_NS}}}table"):
            name = table.get(f"{{{_ODF_TABLE_NS}}}name", "")
            lines.append(f"=== Sheet: {name} ===")
            for row in table.iter(f"{{{_ODF_TABLE_NS}}}table-row"):
                cells = [_odf_node_text(c).strip()
                         for c in row.iter(f"{{{_ODF_TABLE_NS}}}table-cell")]
                while cells and not cells[-1]:
                    cells.pop()
                if cells:
                    lines.append(",".join(cells))
    else:
        for node in root.iter():
            if node.tag in (f"{{{_ODF_TEXT_NS}}}p", f"{{{_ODF_TEXT_NS}}}h"):
                text = _odf_node_text(node).strip()
                if text:
                    lines.append(text)
    return "\n".join(lines)


def _extract_txt(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        return f"[Text extraction error: {e}]"


_EXTRACTORS = {
    ".pdf": _extract_pdf,
    ".doc": _extract_docx,
    ".docx": _extract_docx,
    ".xlsx": _extract_xlsx,
    ".xls": _extract_xlsx,
    ".odt": _extract_odf,
    ".ods": partial(_extract_odf, spreadsheet=True),
    ".txt": _extract_txt,
}


def extract_text(file_path, extension: Optional[str] = None) -> str:
    """Extract raw text from a document. Raises ValueError for unsupported types."""
    path = Path(file_path)
    suffix = (extension or path.suffix).lower()
    extractor = _EXTRACTORS.get(suffix)
    if extractor is None:
        raise ValueError(f"Unsupported file type: {suffix or '(none)'}")
    return extractor(path)


# ── upload processing ──────────────────────────────────────────────────────────

def process_file(file_path, original_name: str, size: Optional[int] = None,
                 mime_type: str = "") -> dict:
    """Extract, store under a new content id, and remove the temporary upload."""
    path = Path(file_path)
    extension = Path(original_name).suffix.lower()
    if size is None:
        size = path.stat().st_size if path.exists() else 0
    logger.info("Processing file: %s (%s)", original_name, extension)

    try:
        content = extract_text(path, extension)
        logger.info("Document parsed: %d characters", len(content))
    except ValueError as exc:
        logger.error("Document parsing error for %s: %s", original_name, exc)
        content = (f"Error parsing {original_name}: {exc}\n"
                   f"File size: {size} bytes\nPlease try with a different document.")

    content_id = str(uuid.uuid4())
    try:
        file_manager.save_processed_content(content_id, {
            "originalFile": original_name,
            "content": content,
            "metadata": {
                "size": size,
                "mimeType": mime_type,
                "processedAt": datetime.now(timezone.utc).isoformat(),
                "extension": extension,
            },
        })
    finally:
        if path.exists():
            path.unlink()

    return {
        "success": True,
        "contentId": content_id,
        "originalFile": original_name,
        "size": size,
        "preview": content[:PREVIEW_CHARS] + "...",
    }
