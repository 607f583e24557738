"""Generic driver: gating -> fetch (with mirror fallback) -> parse.

The driver does not log or catch fetch errors; callers (the registry, the
CLI) decide how to report a failed source.
"""

from metascrape.scraping.contract import DelegatingScraper, ScraperContract
from metascrape.scraping.fetch import NetworkTool, fetch_with_fallback
from metascrape.scraping.models import PaperRecord


MAX_DELEGATION_DEPTH = 8


async def scrape(
    contract: ScraperContract,
    record: PaperRecord,
    network: NetworkTool,
    force: bool = False,
) -> PaperRecord:
    """Run one source over one record.

    Args:
        contract: Source to run; delegating sources are routed first
        record: Draft being enriched (mutated in place)
        network: Transport collaborator
        force: Fetch even if the source's gating disabled it

    Returns:
        The record after parsing, or the untouched record when gated off

    Raises:
        NetworkError: Propagated from the fetch layer
    """
    source = contract
    # One pass per hop plus the pass that finds the final source.
    for _ in range(MAX_DELEGATION_DEPTH + 1):
        if not isinstance(source, DelegatingScraper):
            break
        selected = source.select_source(record)
        if selected is source:
            break
        source = selected
    else:
        raise RuntimeError(f"Delegation chain from {contract.name!r} is too deep")

    request = source.pre_process(record)
    if not request.enabled and not force:
        return record

    response = await fetch_with_fallback(request, network)
    return source.parsing_process(response, record)
