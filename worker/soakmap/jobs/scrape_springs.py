"""CLI job that scrapes a spring listing site and inserts new springs."""

import argparse
import logging
import os
import time
from dataclasses import asdict, dataclass
from typing import Callable, List, Optional

from soakmap.core.config import ConfigError, Settings, get_settings
from soakmap.core.db import SpringStore, close_pool, init_pool
from soakmap.core.sources import SourceProfile, get_source
from soakmap.etl.dedup import Deduplicator
from soakmap.etl.extract import extract_spring
from soakmap.etl.sitemap import extract_links
from soakmap.etl.transform import to_spring_record
from soakmap.etl.writer import write_springs
from soakmap.models import CandidateRecord, SpringRecord, validate_spring
from soakmap.vendors.fetcher import FetchError, Fetcher

logger = logging.getLogger(__name__)

DUPLICATES_LOGGED = 5


class PipelineError(RuntimeError):
    """Raised when a run cannot continue at all (nothing is written)."""


class PipelineStage:
    IDLE = "idle"
    FETCHING_SITEMAP = "fetching_sitemap"
    EXTRACTING_LINKS = "extracting_links"
    SCRAPING_PAGES = "scraping_pages"
    TRANSFORMING = "transforming"
    DEDUPLICATING = "deduplicating"
    WRITING = "writing"
    DONE = "done"

    ORDER = (
        IDLE,
        FETCHING_SITEMAP,
        EXTRACTING_LINKS,
        SCRAPING_PAGES,
        TRANSFORMING,
        DEDUPLICATING,
        WRITING,
        DONE,
    )


@dataclass
class PipelineSummary:
    links: int = 0
    scraped: int = 0
    unusable: int = 0
    page_errors: int = 0
    new: int = 0
    duplicates: int = 0
    inserted: int = 0
    skipped: int = 0
    errors: int = 0
    elapsed_seconds: float = 0.0
    dry_run: bool = False


class SpringIngestPipeline:
    """Sequences fetch → links → scrape → transform → dedup → write for one source."""

    def __init__(
        self,
        settings: Settings,
        profile: SourceProfile,
        *,
        fetcher: Fetcher,
        store,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.settings = settings
        self.profile = profile
        self.fetcher = fetcher
        self.store = store
        self.sleep = sleep
        self.deduplicator = Deduplicator(
            store,
            radius_miles=settings.dedup_radius_miles,
            match_miles=settings.dedup_match_miles,
            name_similarity=settings.dedup_name_similarity,
        )
        self.stage = PipelineStage.IDLE
        self.history: List[str] = [self.stage]

    def _enter(self, stage: str) -> None:
        expected = PipelineStage.ORDER[PipelineStage.ORDER.index(self.stage) + 1]
        if stage != expected:
            raise PipelineError(f"Cannot move from {self.stage} to {stage}")
        self.stage = stage
        self.history.append(stage)
        logger.debug("Stage: %s", stage)

    def _scrape(self, urls: List[str], summary: PipelineSummary) -> List[CandidateRecord]:
        candidates: List[CandidateRecord] = []
        delay = self.settings.request_delay_ms / 1000.0
        for index, url in enumerate(urls, start=1):
            logger.info("Scraping page %d/%d: %s", index, len(urls), url)
            try:
                html = self.fetcher.fetch(url)
            except FetchError as exc:
                logger.warning("Skipping %s: %s", url, exc)
                summary.page_errors += 1
            else:
                candidate = extract_spring(html, url, self.profile)
                if candidate is None:
                    summary.page_errors += 1
                elif not candidate.has_coordinates:
                    logger.debug("No coordinates found for %s", candidate.name)
                    summary.unusable += 1
                else:
                    candidates.append(candidate)

            if index < len(urls) and delay > 0:
                self.sleep(delay)

        summary.scraped = len(candidates)
        logger.info("Scraped %d springs with coordinates", len(candidates))
        return candidates

    def _transform(self, candidates: List[CandidateRecord], summary: PipelineSummary) -> List[SpringRecord]:
        records: List[SpringRecord] = []
        for candidate in candidates:
            record = to_spring_record(candidate, self.profile)
            if record is None:
                summary.unusable += 1
                continue
            problems = validate_spring(record)
            if problems:
                logger.warning("Dropping %s: %s", candidate.url, "; ".join(problems))
                summary.unusable += 1
                continue
            records.append(record)
        return records

    def run(self, *, dry_run: bool = False, limit: Optional[int] = None) -> PipelineSummary:
        started = time.monotonic()
        summary = PipelineSummary(dry_run=dry_run)
        self.stage = PipelineStage.IDLE
        self.history = [self.stage]

        logger.info("Starting %s scrape", self.profile.source_name)
        if dry_run:
            logger.warning("DRY RUN MODE - no data will be inserted")
        if limit:
            logger.info("Limiting to %d records", limit)

        self._enter(PipelineStage.FETCHING_SITEMAP)
        try:
            sitemap = self.fetcher.fetch(self.profile.sitemap_url)
        except FetchError as exc:
            raise PipelineError(f"Sitemap unreachable: {exc}") from exc

        self._enter(PipelineStage.EXTRACTING_LINKS)
        urls = extract_links(sitemap, self.profile.link_keywords)
        summary.links = len(urls)
        logger.info("Found %d spring pages in sitemap", len(urls))
        if not urls:
            raise PipelineError(f"No spring URLs found in {self.profile.sitemap_url}")

        self._enter(PipelineStage.SCRAPING_PAGES)
        candidates = self._scrape(urls, summary)

        self._enter(PipelineStage.TRANSFORMING)
        records = self._transform(candidates, summary)

        self._enter(PipelineStage.DEDUPLICATING)
        dedup = self.deduplicator.filter_new(records)
        summary.new = len(dedup.new)
        summary.duplicates = len(dedup.duplicates)
        logger.info("Found %d new springs, %d duplicates", summary.new, summary.duplicates)
        for duplicate in dedup.duplicates[:DUPLICATES_LOGGED]:
            matched = duplicate.existing.slug if duplicate.existing else duplicate.candidate.slug
            logger.info('  - "%s" matches %s (%s)', duplicate.candidate.name, matched, duplicate.reason)
        if len(dedup.duplicates) > DUPLICATES_LOGGED:
            logger.info("  ... and %d more", len(dedup.duplicates) - DUPLICATES_LOGGED)

        to_write = dedup.new[:limit] if limit else dedup.new

        self._enter(PipelineStage.WRITING)
        try:
            written = write_springs(
                to_write,
                self.store,
                batch_size=self.settings.insert_batch_size,
                dry_run=dry_run,
            )
        finally:
            self.deduplicator.clear_cache()
        summary.inserted = written.inserted
        summary.skipped = written.skipped
        summary.errors = written.errors

        self._enter(PipelineStage.DONE)
        summary.elapsed_seconds = round(time.monotonic() - started, 2)
        logger.info(
            "Scraped %d springs (%d errors, %d duplicates skipped) in %.1fs",
            summary.inserted,
            summary.errors,
            summary.duplicates,
            summary.elapsed_seconds,
        )
        return summary


def parse_limit(raw: Optional[str]) -> Optional[int]:
    if raw is None:
        return None
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ValueError("--limit must be a positive integer") from None
    if value <= 0:
        raise ValueError("--limit must be a positive integer")
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Scrape springs from a listing site into the springs table")
    parser.add_argument("--dry-run", dest="dry_run", action="store_true", help="Scrape and dedupe without writing")
    parser.add_argument("--limit", dest="limit", help="Maximum number of new springs to insert")
    return parser


def run_scrape_job(*, dry_run: bool, limit: Optional[int], settings: Optional[Settings] = None) -> PipelineSummary:
    settings = settings or get_settings()
    profile = get_source(settings.source_name)
    init_pool()
    with Fetcher(user_agent=settings.user_agent, timeout=settings.fetch_timeout_seconds) as fetcher:
        pipeline = SpringIngestPipeline(settings, profile, fetcher=fetcher, store=SpringStore())
        try:
            return pipeline.run(dry_run=dry_run, limit=limit)
        finally:
            close_pool()


def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )
    args = build_parser().parse_args(argv)

    try:
        limit = parse_limit(args.limit)
    except ValueError as exc:
        logger.error("%s", exc)
        return 1

    try:
        summary = run_scrape_job(dry_run=args.dry_run, limit=limit)
    except (PipelineError, ConfigError) as exc:
        logger.error("Fatal error: %s", exc)
        return 1
    except Exception as exc:  # pragma: no cover - CLI fallback
        logger.error("Spring scrape failed: %s", exc, exc_info=True)
        return 1

    logger.debug("Summary: %s", asdict(summary))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
