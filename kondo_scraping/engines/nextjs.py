"""
Next.js engine: the generic two-phase engine plus __NEXT_DATA__ page props.
"""
from typing import Any, Dict, Optional

from kondo_scraping.engines.base import EngineConfig
from kondo_scraping.engines.generic import GenericEngine, fields_from_jsonld
from kondo_scraping.models.scraping import ManualExtractionResult


NEXTJS_MARKERS = ["__NEXT_DATA__", "/_next/static/"]

# Page-prop keys that usually hold the development record
RECORD_KEYS = ("property", "empreendimento", "development", "listing", "data", "page")


def is_nextjs_site(html: str) -> bool:
    return any(marker in html for marker in NEXTJS_MARKERS)


def find_page_record(page_props: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """The first page-prop object that looks like a listing (has a name or title)."""
    candidates = [page_props.get(key) for key in RECORD_KEYS] + [page_props]
    for candidate in candidates:
        if isinstance(candidate, dict) and (candidate.get("name") or candidate.get("title")):
            return candidate
    return None


class NextJsEngine(GenericEngine):
    engine_config = EngineConfig(name="nextjs", render_js=False, default_city=None, default_state=None)

    def structured_fields(self, manual: ManualExtractionResult) -> Dict[str, Any]:
        if not (manual.success and manual.source == "__NEXT_DATA__" and isinstance(manual.data, dict)):
            return super().structured_fields(manual)

        page_props = manual.data.get("props", {}).get("pageProps", {})
        record = find_page_record(page_props) if isinstance(page_props, dict) else None
        if record is None:
            return {}

        values: Dict[str, Any] = {}
        name = record.get("name") or record.get("title")
        if isinstance(name, str) and name.strip():
            values["name"] = name.strip()
        description = record.get("description")
        if isinstance(description, str) and description.strip():
            values["description"] = description.strip()

        # Some sites ship schema.org-shaped address/offers inside the page props
        for key, value in fields_from_jsonld(record).items():
            values.setdefault(key, value)
        return values
