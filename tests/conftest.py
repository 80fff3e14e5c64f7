import io
import os
import tempfile

_DB_DIR = tempfile.mkdtemp(prefix="dpr-review-")
os.environ["DATABASE_URL"] = (
    f"sqlite+aiosqlite:///{os.path.join(_DB_DIR, 'test.db')}"
)
os.environ["RATE_LIMIT_PER_IP"] = "1000/minute"

import fitz  # PyMuPDF
import pytest
from docx import Document
from fastapi.testclient import TestClient


@pytest.fixture(scope="session")
def client():
    from dpr_review.main import app

    # One client for the whole run keeps every request on the same event
    # loop as the pooled database connections.
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def make_pdf():
    def _make(*lines: str) -> bytes:
        doc = fitz.open()
        page = doc.new_page()
        y = 72
        for line in lines:
            page.insert_text((72, y), line)
            y += 16
        data = doc.tobytes()
        doc.close()
        return data

    return _make


@pytest.fixture()
def make_docx():
    def _make(*paragraphs: str) -> bytes:
        doc = Document()
        for paragraph in paragraphs:
            doc.add_paragraph(paragraph)
        buf = io.BytesIO()
        doc.save(buf)
        return buf.getvalue()

    return _make
