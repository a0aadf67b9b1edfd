"""aiohttp front end: OwnTracks HTTP publishing and the metrics scrape.

Routes::

    POST <server.publish_path>   OwnTracks payload in, JSON array out
    GET  <metrics.path>          Prometheus text exposition (drains the report)

The publish route always answers ``200`` with a JSON array, even when the
body is garbage or processing fails, so clients never retry-loop on us.
"""

from __future__ import annotations

import logging
from typing import Optional

import orjson
from aiohttp import web

from owntracks_exporter.config import AppConfig
from owntracks_exporter.exposition import CONTENT_TYPE
from owntracks_exporter.filter import SampleFilter
from owntracks_exporter.pipeline import LocationPipeline, TrackingContext

logger = logging.getLogger(__name__)

PIPELINE_KEY = web.AppKey("pipeline", LocationPipeline)


def create_app(cfg: AppConfig, context: Optional[TrackingContext] = None) -> web.Application:
    """Build the web application around a (new or given) tracking context."""
    pipeline = LocationPipeline(
        context or TrackingContext.from_config(cfg),
        SampleFilter(cfg.filter),
    )

    app = web.Application()
    app[PIPELINE_KEY] = pipeline
    app.router.add_post(cfg.server.publish_path, _publish)
    app.router.add_get(cfg.metrics.path, _metrics)
    return app


async def _publish(request: web.Request) -> web.Response:
    pipeline = request.app[PIPELINE_KEY]
    body = await request.read()

    try:
        reply = pipeline.handle(body)
    except Exception:
        logger.exception("Failed to process payload from %s", request.remote)
        reply = []

    return web.Response(body=orjson.dumps(reply), content_type="application/json")


async def _metrics(request: web.Request) -> web.Response:
    pipeline = request.app[PIPELINE_KEY]
    text = pipeline.scrape()
    return web.Response(
        body=text.encode("utf-8"),
        headers={"Content-Type": CONTENT_TYPE},
    )
