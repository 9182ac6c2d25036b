import logging
import os
from typing import Dict, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from nubarber.db.models import Base
from nubarber.models import Region

logger = logging.getLogger(__name__)

DEFAULT_REGION = Region.US.value
TEST_DATABASE_URL = "sqlite:///:memory:"


def _create_engine(url: str) -> Engine:
    if url.startswith("sqlite"):
        # SQLite specific configuration; an in-memory DB must share one connection
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in url:
            kwargs["poolclass"] = StaticPool
        return create_engine(url, **kwargs)
    return create_engine(url, pool_pre_ping=True)


class DatabaseRouter:
    """
    Maps a shop's region to the database holding its data.

    Engines are created lazily on first use and cached per distinct URL, so
    regions that share a URL share an engine. The `shops` table is always read
    from the default region's database.
    """

    def __init__(self, region_urls: Dict[str, str], default_region: str = DEFAULT_REGION):
        if default_region not in region_urls:
            raise ValueError(f"No database URL configured for default region '{default_region}'")
        self.default_region = default_region
        self._region_urls = dict(region_urls)
        self._engines: Dict[str, Engine] = {}
        self._sessionmakers: Dict[str, sessionmaker] = {}

    def url_for(self, region: Optional[str] = None) -> str:
        key = region.value if isinstance(region, Region) else (region or self.default_region)
        url = self._region_urls.get(key)
        if url is None:
            logger.warning("No database configured for region '%s'; using default region", key)
            url = self._region_urls[self.default_region]
        return url

    def engine_for(self, region: Optional[str] = None) -> Engine:
        url = self.url_for(region)
        engine = self._engines.get(url)
        if engine is None:
            engine = _create_engine(url)
            self._engines[url] = engine
            self._sessionmakers[url] = sessionmaker(autocommit=False, autoflush=False, bind=engine)
        return engine

    def session_for(self, region: Optional[str] = None) -> Session:
        url = self.url_for(region)
        self.engine_for(region)
        return self._sessionmakers[url]()

    def create_all(self) -> None:
        """Creates tables on every configured database if they don't exist."""
        # Suitable for development; production would use a migration tool
        for region in self._region_urls:
            Base.metadata.create_all(bind=self.engine_for(region))

    def dispose(self) -> None:
        for engine in self._engines.values():
            engine.dispose()
        self._engines.clear()
        self._sessionmakers.clear()


def build_router(settings: Dict) -> DatabaseRouter:
    """
    Builds the region router from settings.

    With TESTING set, every region resolves to one shared in-memory SQLite database.
    """
    if os.environ.get("TESTING"):
        return DatabaseRouter({region.value: TEST_DATABASE_URL for region in Region})

    default_url = settings["database_url"]
    region_urls = {
        Region.US.value: default_url,
        Region.EU.value: settings.get("database_url_eu") or default_url,
        Region.UK.value: settings.get("database_url_uk") or default_url,
    }
    return DatabaseRouter(region_urls)
