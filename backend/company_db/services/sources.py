# backend/company_db/services/sources.py

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..core.config import Settings
from ..core.errors import SourceUnavailable

logger = logging.getLogger(__name__)

NOTE_SUFFIXES = (".txt", ".md")


def _is_sign_in_page(resp: httpx.Response) -> bool:
    """
    True when a download ended on an HTML page instead of the text export,
    typically the sign-in page a private document redirects to.
    """
    if resp.history and resp.url.host.startswith("accounts."):
        return True
    if resp.headers.get("content-type", "").startswith("text/html"):
        return True
    head = resp.text.lstrip("\ufeff").lstrip()[:64].lower()
    return head.startswith(("<!doctype html", "<html"))


class DocumentSource(ABC):
    """Obtains the raw text of one note document."""

    @abstractmethod
    def get_raw_text(self, document_id: str) -> str:
        """Return the document text or raise SourceUnavailable."""
        ...


class GoogleDocsSource(DocumentSource):
    """
    Reads notes through the Google Docs plain-text export endpoint.

    Transport errors are retried; HTTP error statuses are not (a missing or
    private document will not become available on retry). An unshared
    document redirects to a sign-in page, which is reported as access denied.
    """

    def __init__(
        self,
        export_url_template: str,
        access_token: Optional[str] = None,
        timeout: float = 20,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.export_url_template = export_url_template
        self.access_token = access_token
        self._client = client or httpx.Client(timeout=timeout, follow_redirects=True)

    @classmethod
    def from_settings(cls, settings: Settings) -> "GoogleDocsSource":
        return cls(
            export_url_template=settings.GOOGLE_DOCS_EXPORT_URL,
            access_token=settings.GOOGLE_ACCESS_TOKEN,
            timeout=settings.DOCUMENT_TIMEOUT_SECONDS,
        )

    def _headers(self) -> dict:
        if not self.access_token:
            return {}
        return {"Authorization": f"Bearer {self.access_token.strip()}"}

    @retry(
        wait=wait_exponential(multiplier=1, min=1, max=10),
        stop=stop_after_attempt(3),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    def _download(self, url: str) -> httpx.Response:
        return self._client.get(url, headers=self._headers())

    def get_raw_text(self, document_id: str) -> str:
        url = self.export_url_template.format(doc_id=document_id)
        try:
            resp = self._download(url)
        except (httpx.TransportError, httpx.TooManyRedirects) as e:
            logger.warning(
                "Document download failed: %s",
                e,
                extra={"doc_id": document_id},
            )
            raise SourceUnavailable(document_id, f"transport error: {e}") from e

        if resp.status_code >= 400:
            logger.warning(
                "Document export returned %s",
                resp.status_code,
                extra={"doc_id": document_id},
            )
            raise SourceUnavailable(document_id, f"HTTP {resp.status_code}")

        if _is_sign_in_page(resp):
            logger.warning(
                "Document export landed on a sign-in page at %s",
                resp.url,
                extra={"doc_id": document_id},
            )
            raise SourceUnavailable(document_id, "access denied (redirected to sign-in)")

        # The txt export starts with a byte-order mark
        return resp.text.lstrip("\ufeff")


class DirectorySource(DocumentSource):
    """
    Reads notes from a local directory, one ``<document_id>.txt`` or
    ``<document_id>.md`` file per note.
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def _path_for(self, document_id: str) -> Optional[Path]:
        if not document_id or any(sep in document_id for sep in ("/", "\\")) or document_id.startswith("."):
            raise SourceUnavailable(document_id, "invalid document id")
        for suffix in NOTE_SUFFIXES:
            candidate = self.root / f"{document_id}{suffix}"
            if candidate.is_file():
                return candidate
        return None

    def get_raw_text(self, document_id: str) -> str:
        path = self._path_for(document_id)
        if path is None:
            raise SourceUnavailable(document_id, f"no note file in {self.root}")
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise SourceUnavailable(document_id, str(e)) from e

    def list_document_ids(self) -> List[str]:
        if not self.root.is_dir():
            return []
        return sorted(
            p.stem
            for p in self.root.iterdir()
            if p.is_file() and p.suffix in NOTE_SUFFIXES and not p.name.startswith(".")
        )


def build_source(settings: Settings) -> DocumentSource:
    if settings.NOTES_DIR:
        return DirectorySource(settings.NOTES_DIR)
    return GoogleDocsSource.from_settings(settings)
