import os
import ssl
from urllib.parse import urlparse, parse_qs, urlencode, urlunparse

from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase


def async_database_url(url: str) -> tuple[str, dict]:
    """Return an async driver URL and the connect_args it needs.

    Hosted Postgres URLs carry sslmode=require and channel_binding=require,
    which asyncpg rejects in the URL. They are stripped and SSL is passed
    through connect_args instead.
    """
    parsed = urlparse(url)
    if not parsed.scheme.startswith("postgresql"):
        return url, {}

    query_params = parse_qs(parsed.query)

    needs_ssl = query_params.pop("sslmode", [None])[0] == "require"
    query_params.pop("channel_binding", None)

    clean_query = urlencode(query_params, doseq=True)
    scheme = "postgresql+asyncpg" if parsed.scheme == "postgresql" else parsed.scheme
    clean_url = urlunparse(parsed._replace(scheme=scheme, query=clean_query))

    connect_args = {"ssl": ssl.create_default_context()} if needs_ssl else {}
    return clean_url, connect_args


DATABASE_URL = os.getenv("DATABASE_URL", "")

if not DATABASE_URL:
    raise RuntimeError("DATABASE_URL environment variable is required.")

DATABASE_URL, _connect_args = async_database_url(DATABASE_URL)

engine = create_async_engine(
    DATABASE_URL, echo=False, pool_pre_ping=True, connect_args=_connect_args
)
SessionLocal = async_sessionmaker(engine, expire_on_commit=False)


class Base(DeclarativeBase):
    pass
