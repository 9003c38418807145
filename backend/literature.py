from __future__ import annotations

import logging
import os
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests
from requests import RequestException

logger = logging.getLogger(__name__)

ESEARCH_URL = "https://eutils.ncbi.nlm.nih.gov/entrez/eutils/esearch.fcgi"
EFETCH_URL = "https://eutils.ncbi.nlm.nih.gov/entrez/eutils/efetch.fcgi"
ARTICLE_URL = "https://pubmed.ncbi.nlm.nih.gov/{pmid}/"
NO_LITERATURE = "No specific medical literature found for this query."


@dataclass(frozen=True)
class Article:
    pmid: str
    title: str
    abstract: str

    @property
    def url(self) -> str:
        return ARTICLE_URL.format(pmid=self.pmid)


def _text(node: Optional[ET.Element]) -> str:
    if node is None:
        return ""
    return " ".join("".join(node.itertext()).split())


def parse_articles(xml_text: str) -> List[Article]:
    """Parse an efetch ``PubmedArticleSet`` document into articles, in document order."""

    root = ET.fromstring(xml_text)
    articles: List[Article] = []
    for item in root.iter("PubmedArticle"):
        pmid = _text(item.find("./MedlineCitation/PMID"))
        if not pmid:
            continue
        sections = []
        for part in item.findall(".//Abstract/AbstractText"):
            text = _text(part)
            if not text:
                continue
            label = part.get("Label")
            sections.append(f"{label}: {text}" if label else text)
        articles.append(
            Article(
                pmid=pmid,
                title=_text(item.find(".//ArticleTitle")),
                abstract=" ".join(sections),
            )
        )
    return articles


def build_context(articles: List[Article]) -> Dict[str, Any]:
    if not articles:
        return {"context": NO_LITERATURE, "citations": []}
    lines = ["Relevant medical literature:", ""]
    citations = []
    for index, article in enumerate(articles, start=1):
        lines.append(f"[{index}] {article.title}\n{article.abstract}\n")
        citations.append({"index": index, "title": article.title, "url": article.url})
    return {"context": "\n".join(lines), "citations": citations}


class PubMedClient:
    def __init__(
        self,
        session: Optional[requests.Session] = None,
        *,
        timeout_s: Optional[float] = None,
        api_key: Optional[str] = None,
    ) -> None:
        self._session = session or requests.Session()
        self.timeout_s = timeout_s if timeout_s is not None else float(os.getenv("PUBMED_TIMEOUT_S", "10"))
        self.api_key = api_key if api_key is not None else os.getenv("PUBMED_API_KEY")

    def _params(self, **params: Any) -> Dict[str, Any]:
        params["db"] = "pubmed"
        if self.api_key:
            params["api_key"] = self.api_key
        return params

    def search_ids(self, query: str, max_results: int = 3) -> List[str]:
        try:
            resp = self._session.get(
                ESEARCH_URL,
                params=self._params(term=query, retmode="json", retmax=max_results),
                timeout=self.timeout_s,
            )
            resp.raise_for_status()
            data = resp.json()
        except (RequestException, ValueError) as exc:
            logger.warning("PubMed search failed for %r: %s", query, exc)
            return []
        result = data.get("esearchresult") if isinstance(data, dict) else None
        ids = result.get("idlist") if isinstance(result, dict) else None
        if not isinstance(ids, list):
            logger.warning("PubMed search for %r returned an unexpected payload", query)
            return []
        return [str(pmid) for pmid in ids][:max_results]

    def fetch_articles(self, ids: List[str]) -> List[Article]:
        if not ids:
            return []
        try:
            resp = self._session.get(
                EFETCH_URL,
                params=self._params(id=",".join(ids), retmode="xml", rettype="abstract"),
                timeout=self.timeout_s,
            )
            resp.raise_for_status()
            return parse_articles(resp.text)
        except (RequestException, ET.ParseError) as exc:
            logger.warning("PubMed fetch failed for %s: %s", ",".join(ids), exc)
            return []

    def medical_literature(self, question: str, max_results: int = 3) -> Dict[str, Any]:
        return build_context(self.fetch_articles(self.search_ids(question, max_results)))
