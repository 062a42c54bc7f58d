"""Resolver turning a DOI into a bibliography record."""

from __future__ import annotations

from urllib.parse import quote

import httpx

from reed.logs import get_logger
from reed.models import MetadataRecord
from reed.settings import Settings
from reed.utils import extract_doi, slugify

logger = get_logger(__name__)

CROSSREF_ENTRY_TYPES = {
    "journal-article": "article",
    "book": "book",
    "monograph": "book",
    "edited-book": "book",
    "book-chapter": "incollection",
    "proceedings-article": "inproceedings",
    "proceedings": "proceedings",
    "report": "techreport",
    "dissertation": "phdthesis",
    "posted-content": "unpublished",
}


class CrossrefResolver:
    """Fetches metadata from the Crossref Works API."""

    name = "crossref"

    def __init__(self, client: httpx.AsyncClient, settings: Settings) -> None:
        self._client = client
        self._settings = settings

    async def resolve(self, identifier: str) -> MetadataRecord | None:
        doi = extract_doi(identifier)
        if doi is None:
            logger.info("resolver.not_a_doi", resolver=self.name, identifier=identifier)
            return None
        logger.info("resolver.attempt", resolver=self.name, doi=doi)
        try:
            message = await self._fetch_payload(doi)
        except httpx.HTTPError as exc:
            logger.warning("resolver.error", resolver=self.name, error=str(exc))
            return None
        if not message:
            logger.info("resolver.empty", doi=doi)
            return None
        return self._parse_record(doi, message)

    async def _fetch_payload(self, doi: str) -> dict:
        url = f"{self._settings.crossref_base_url}/{quote(doi)}"
        response = await self._client.get(url, timeout=30)
        response.raise_for_status()
        data = response.json()
        message = data.get("message", data)
        return message if isinstance(message, dict) else {}

    def _parse_record(self, doi: str, payload: dict) -> MetadataRecord:
        fields: dict[str, str] = {"doi": (payload.get("DOI") or doi).lower()}
        titles = payload.get("title") or []
        if titles:
            fields["title"] = titles[0]
        authors = [
            ", ".join(part for part in (entry.get("family", ""), entry.get("given", "")) if part)
            for entry in payload.get("author", []) or []
        ]
        authors = [author for author in authors if author]
        if authors:
            fields["author"] = " and ".join(authors)
        date_parts = _first_date_parts(payload)
        if date_parts:
            fields["year"] = str(date_parts[0])
            if len(date_parts) > 1:
                fields["month"] = str(date_parts[1])
        containers = payload.get("container-title") or []
        entry_type = CROSSREF_ENTRY_TYPES.get(payload.get("type", ""), "misc")
        if containers:
            fields["journal" if entry_type == "article" else "booktitle"] = containers[0]
        for source, target in (
            ("volume", "volume"),
            ("issue", "number"),
            ("page", "pages"),
            ("publisher", "publisher"),
            ("URL", "url"),
        ):
            if payload.get(source):
                fields[target] = str(payload[source])
        return MetadataRecord(
            key=_citation_key(authors, fields.get("year"), fields["doi"]),
            entry_type=entry_type,
            fields=fields,
        )


def _first_date_parts(payload: dict) -> list[int]:
    for name in ("published-print", "published-online", "issued"):
        parts = (payload.get(name) or {}).get("date-parts") or []
        if parts and parts[0] and parts[0][0] is not None:
            return parts[0]
    return []


def _citation_key(authors: list[str], year: str | None, doi: str) -> str:
    if authors:
        family = slugify(authors[0].split(",", 1)[0]).replace("-", "")
        if family and family != "item":
            return f"{family}{year or ''}"
    return slugify(doi)
