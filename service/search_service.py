# service/search_service.py
import asyncio
import httpx, logging
from typing import AsyncIterator, List, Optional, Sequence, Tuple
from config.settings import settings
from core.http import ensure_ok, open_client
from model.evidence import Source
from model.pipeline import SearchMetadata, SearchOutput, SubQuery
from util.errors import UpstreamError
from util.timing import timed

logger = logging.getLogger(__name__)

SERVICE = "tavily"
SingleResult = Tuple[int, List[Source], SearchMetadata]


def deduplicate_sources(sources: Sequence[Source]) -> List[Source]:
    """
    First occurrence of each URL wins (case and trailing slash ignored);
    survivors are renumbered s1..sN so [n] citations map to sN.
    """
    seen: set[str] = set()
    unique: List[Source] = []
    for s in sources:
        key = s.url.lower().rstrip("/")
        if key in seen:
            continue
        seen.add(key)
        unique.append(s)
    return [s.model_copy(update={"id": f"s{i + 1}"}) for i, s in enumerate(unique)]


def search_stats(metadata: Sequence[SearchMetadata]) -> dict:
    return {
        "totalQueries": len(metadata),
        "successfulQueries": sum(1 for m in metadata if m.status == "complete"),
        "failedQueries": sum(1 for m in metadata if m.status == "failed"),
        "noResultsQueries": sum(1 for m in metadata if m.status == "no_results"),
        "totalSourcesFound": sum(m.sourcesFound for m in metadata),
    }


class SearchService:
    def __init__(self, client: Optional[httpx.AsyncClient] = None) -> None:
        self._client = client

    async def _search_one(
        self, c: httpx.AsyncClient, sub_query: SubQuery, max_results: int
    ) -> Tuple[List[Source], SearchMetadata]:
        payload = {
            "api_key": settings.TAVILY_API_KEY,
            "query": sub_query.query,
            "max_results": max_results,
            "search_depth": settings.SEARCH_DEPTH,
            "include_answer": False,
            "include_raw_content": False,
        }
        try:
            res = await c.post(settings.TAVILY_API_URL, json=payload)
            ensure_ok(res, SERVICE)
            results = res.json().get("results") or []
        except (httpx.HTTPError, UpstreamError, ValueError) as e:
            logger.error("search.query.failed id=%s err=%s", sub_query.id, e)
            return [], SearchMetadata(
                queryId=sub_query.id, query=sub_query.query, sourcesFound=0, status="failed"
            )

        sources = [
            Source(
                id=f"{sub_query.id}_s{i}",
                url=str(r.get("url") or ""),
                title=str(r.get("title") or "Untitled"),
                snippet=str(r.get("content") or ""),
                fromQuery=sub_query.id,
            )
            for i, r in enumerate(results)
            if isinstance(r, dict) and r.get("url")
        ]
        return sources, SearchMetadata(
            queryId=sub_query.id,
            query=sub_query.query,
            sourcesFound=len(sources),
            status="complete" if sources else "no_results",
        )

    async def iter_search(
        self, sub_queries: Sequence[SubQuery], results_per_query: int
    ) -> AsyncIterator[SingleResult]:
        """
        One (position, sources, metadata) per sub-query in completion order.
        A failing sub-query reports status=failed instead of raising.
        """
        async with open_client(self._client, settings.SEARCH_TIMEOUT_SECONDS) as c:

            async def _run(i: int, sq: SubQuery) -> SingleResult:
                sources, meta = await self._search_one(c, sq, results_per_query)
                return i, sources, meta

            tasks = [asyncio.create_task(_run(i, sq)) for i, sq in enumerate(sub_queries)]
            try:
                for fut in asyncio.as_completed(tasks):
                    yield await fut
            finally:
                for t in tasks:
                    if not t.done():
                        t.cancel()

    @staticmethod
    def assemble(results: Sequence[SingleResult], duration_ms: int) -> SearchOutput:
        """Merge per-query results in sub-query order. Zero sources is a failure."""
        ordered = sorted(results, key=lambda r: r[0])
        all_sources = [s for _, sources, _ in ordered for s in sources]
        unique = deduplicate_sources(all_sources)
        if not unique:
            raise UpstreamError(SERVICE, "no sources found for any sub-query")
        return SearchOutput(
            sources=unique,
            searchMetadata=[meta for _, _, meta in ordered],
            durationMs=duration_ms,
        )

    async def parallel_search(
        self, sub_queries: Sequence[SubQuery], results_per_query: Optional[int] = None
    ) -> SearchOutput:
        if not sub_queries:
            raise ValueError("parallel_search requires at least one sub-query")
        rpq = results_per_query or settings.RESULTS_PER_QUERY
        results: List[SingleResult] = []
        with timed(logger, "search.run", queries=len(sub_queries)) as t:
            async for item in self.iter_search(sub_queries, rpq):
                results.append(item)
        output = self.assemble(results, t["ms"])
        logger.info("search.stats %s", search_stats(output.searchMetadata))
        return output
