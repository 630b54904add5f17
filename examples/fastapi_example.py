"""Example FastAPI application exporting DM metrics.

Run with:
    uvicorn examples.fastapi_example:app --reload

Endpoints:
    /metrics              - Prometheus text format (one collection cycle)
    /logs                 - NDJSON failure notices (all entries)
    /logs?since=<ts>      - NDJSON notices since timestamp
    /logs?level=<level>   - NDJSON notices filtered by level (ERROR, WARNING, ...)

Data source:
    A SQLite file seeded with a few DM dynamic views stands in for a DM
    server. Set ``DMEXPORTER_SQLITE_PATH`` to point at another file. Probes
    whose views are missing log a notice and are skipped.
"""

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from dmexporter.adapters.connection.sqlite import SQLiteConnection
from dmexporter.adapters.frameworks.fastapi import create_exporter_router
from dmexporter.adapters.logging import NoticeHandler
from dmexporter.adapters.storage.ring_buffer import RingBufferLogStorage
from dmexporter.core.config import EngineConfig
from dmexporter.core.engine import Engine

DEMO_SCHEMA = """
CREATE TABLE IF NOT EXISTS DUAL (X INTEGER);
DELETE FROM DUAL;
INSERT INTO DUAL VALUES (1);

CREATE TABLE IF NOT EXISTS V$SYSSTAT (NAME TEXT, STAT_VAL REAL);
DELETE FROM V$SYSSTAT;
INSERT INTO V$SYSSTAT VALUES ('select statements', 1200), ('insert statements', 35);

CREATE TABLE IF NOT EXISTS V$BUFFERPOOL (NAME TEXT, RAT_HIT REAL);
DELETE FROM V$BUFFERPOOL;
INSERT INTO V$BUFFERPOOL VALUES ('NORMAL', 0.97), ('KEEP', 0.99);

CREATE TABLE IF NOT EXISTS V$DYNAMIC_TABLES (NAME TEXT);
DELETE FROM V$DYNAMIC_TABLES;
INSERT INTO V$DYNAMIC_TABLES VALUES ('V$SYSSTAT'), ('V$BUFFERPOOL');
"""

# Keep recent failure notices for /logs
log_storage = RingBufferLogStorage(max_size=500)
logging.getLogger("dmexporter").addHandler(NoticeHandler(log_storage))

connection = SQLiteConnection(
    os.environ.get("DMEXPORTER_SQLITE_PATH", "dm_demo.db"),
    schema=DEMO_SCHEMA,
    source_id="demo-dm",
)
engine = Engine(connection, EngineConfig.from_env())


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    yield
    await connection.close()


app = FastAPI(title="DM Exporter Example", lifespan=lifespan)
app.include_router(create_exporter_router(engine, log_storage))
