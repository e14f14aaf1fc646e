"""
Search provider interface and bulk ingestion of search results.

Providers return candidate postings; none of them are trusted as already
deduplicated. Every posting passes through the job store before any interest
or tracking operation can reference it by id.
"""
import hashlib
import logging
import re
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from app.core import config
from app.db.models.job_posting import LocationType
from app.schemas.search import JobSearchParams, ProviderSearchResult, JobSearchResponse
from app.schemas.job_posting import JobPostingCreate, JobPostingResponse
from app.services.job_store import ensure_stored

logger = logging.getLogger(__name__)

# Checked in order; the first hit wins
CURRENCY_MARKERS = [
    ("AED", ("AED", "dirham")),
    ("SAR", ("SAR", "riyal")),
    ("QAR", ("QAR",)),
    ("KWD", ("KWD", "dinar")),
    ("BHD", ("BHD",)),
    ("OMR", ("OMR",)),
    ("EUR", ("€", "EUR")),
    ("GBP", ("£", "GBP")),
]
MIN_SALARY_VALUE = 1000


class JobSearchProvider(ABC):
    """Abstract base class for keyword/location search providers."""

    name: str = "unknown"

    @abstractmethod
    def search(self, params: JobSearchParams) -> ProviderSearchResult:
        """
        Run a search.

        Args:
            params: keywords, location and optional filters

        Returns:
            ProviderSearchResult with candidate postings
        """
        pass


def generate_job_id(title: str, company: str, location: str) -> str:
    """Deterministic id for providers that do not supply one."""
    digest = hashlib.sha1(f"{title}|{company}|{location}".encode("utf-8")).hexdigest()
    return f"ai_{digest[:16]}"


def detect_location_type(text: Optional[str]) -> Optional[LocationType]:
    lower = (text or "").lower()
    if "remote" in lower or "work from home" in lower or "wfh" in lower:
        return LocationType.REMOTE
    if "hybrid" in lower:
        return LocationType.HYBRID
    if "onsite" in lower or "on-site" in lower or "in office" in lower:
        return LocationType.ONSITE
    return None


def parse_salary_from_text(text: Optional[str]) -> Dict:
    """
    Pull a salary range out of free text like "AED 28,000 - 40,000/month".

    Returns:
        Dict with min, max (None when absent) and currency
    """
    text = text or ""
    currency = config.DEFAULT_SALARY_CURRENCY
    for code, markers in CURRENCY_MARKERS:
        if any(marker in text for marker in markers):
            currency = code
            break

    values = [
        int(number.replace(",", ""))
        for number in re.findall(r"\d[\d,]*", text)
    ]
    values = [value for value in values if value >= MIN_SALARY_VALUE]

    if len(values) >= 2:
        return {"min": min(values), "max": max(values), "currency": currency}
    if len(values) == 1:
        return {"min": values[0], "max": None, "currency": currency}
    return {"min": None, "max": None, "currency": currency}


def normalize_candidate(candidate: JobPostingCreate) -> JobPostingCreate:
    """
    Fill what providers commonly leave out.

    - id: derived from title, company and location
    - location_type: from raw["work_type"], else from title/location/description
    - salary: parsed from a free-text raw["salary"] when no range was given
    """
    raw = candidate.raw or {}
    updates = {}

    if not candidate.id:
        updates["id"] = generate_job_id(candidate.title, candidate.company_name, candidate.location or "")

    if candidate.location_type is None:
        if raw.get("work_type"):
            location_type = detect_location_type(raw["work_type"])
        else:
            location_type = detect_location_type(
                f"{candidate.title} {candidate.location or ''} {candidate.description_snippet or ''}"
            )
        if location_type is not None:
            updates["location_type"] = location_type

    if candidate.salary_min is None and candidate.salary_max is None and isinstance(raw.get("salary"), str):
        salary = parse_salary_from_text(raw["salary"])
        updates["salary_min"] = salary["min"]
        updates["salary_max"] = salary["max"]
        updates["salary_currency"] = salary["currency"]

    return candidate.model_copy(update=updates) if updates else candidate


def search_and_ingest(db: Session, provider: JobSearchProvider, params: JobSearchParams) -> JobSearchResponse:
    """
    Search through the provider and store every returned posting.

    Candidates are normalized first (see normalize_candidate). The response
    carries the stored records, so ids reflect deduplication. Duplicates
    within one page collapse into a single entry.
    """
    result = provider.search(params)

    stored: List[JobPostingResponse] = []
    seen = set()
    for candidate in result.jobs:
        posting = ensure_stored(db, normalize_candidate(candidate))
        if posting.id in seen:
            continue
        seen.add(posting.id)
        stored.append(JobPostingResponse.model_validate(posting))

    logger.info(
        f"Search ingested: provider={result.provider}, returned={len(result.jobs)}, "
        f"stored={len(stored)}, page={result.page}"
    )

    return JobSearchResponse(
        jobs=stored,
        total_count=result.total_count,
        page=result.page,
        provider=result.provider,
    )
