from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from estate_api.core.config import get_settings

_url = make_url(get_settings().DATABASE_URL)

engine_kwargs = {"pool_pre_ping": True}
connect_args = {}
if _url.get_backend_name().startswith("postgresql"):
    connect_args["options"] = "-c timezone=utc"
elif _url.get_backend_name() == "sqlite":
    # Local runs and tests; an in-memory database must share one connection.
    connect_args["check_same_thread"] = False
    if _url.database in (None, "", ":memory:"):
        engine_kwargs = {"poolclass": StaticPool}

engine = create_engine(_url, connect_args=connect_args, **engine_kwargs)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
