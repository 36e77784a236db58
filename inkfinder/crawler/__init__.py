"""Studio/artist crawler.

Public re-exports so callers can write::

    from inkfinder.crawler import CrawlScheduler, Fetcher
"""

from inkfinder.crawler.control import CancelToken, CrawlAborted, FetchError
from inkfinder.crawler.discovery import DirectoryDiscoverer
from inkfinder.crawler.extractor import extract_artist_data, extract_studio_data
from inkfinder.crawler.fetcher import Fetcher
from inkfinder.crawler.models import CrawlProgress, CrawlResults, CrawlStatus
from inkfinder.crawler.runner import BatchPolicy, BatchRunner
from inkfinder.crawler.scheduler import CrawlScheduler, CrawlSession, run_crawl
from inkfinder.crawler.studio import StudioCrawler

__all__ = [
    "BatchPolicy",
    "BatchRunner",
    "CancelToken",
    "CrawlAborted",
    "CrawlProgress",
    "CrawlResults",
    "CrawlScheduler",
    "CrawlSession",
    "CrawlStatus",
    "DirectoryDiscoverer",
    "FetchError",
    "Fetcher",
    "StudioCrawler",
    "extract_artist_data",
    "extract_studio_data",
    "run_crawl",
]
