"""Minimal management server for exercising simulated device sessions.

Answers an Inform with an InformResponse and closes the session with
``204 No Content`` on the first empty request.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable, List, Set

from aiohttp import web

SERIAL_PATTERN = re.compile(r"<SerialNumber>([^<]*)</SerialNumber>")

INFORM_RESPONSE = """<?xml version="1.0" encoding="UTF-8"?>
<soap-env:Envelope xmlns:soap-env="http://schemas.xmlsoap.org/soap/envelope/" xmlns:cwmp="urn:dslforum-org:cwmp-1-0">
<soap-env:Body><cwmp:InformResponse><MaxEnvelopes>1</MaxEnvelopes></cwmp:InformResponse></soap-env:Body>
</soap-env:Envelope>"""


@dataclass
class AcsRecorder:
    """What the fake server saw."""

    fail_serials: Set[str] = field(default_factory=set)
    never_close: bool = False
    informs: List[str] = field(default_factory=list)
    bodies: List[str] = field(default_factory=list)
    empty_posts: int = 0


ACS_RECORDER = web.AppKey("acs_recorder", AcsRecorder)


async def _handle(request: web.Request) -> web.Response:
    recorder = request.app[ACS_RECORDER]
    body = await request.text()

    if body.strip():
        recorder.bodies.append(body)
        match = SERIAL_PATTERN.search(body)
        serial = match.group(1) if match else ""
        recorder.informs.append(serial)
        if serial in recorder.fail_serials:
            return web.Response(status=500, text="inform rejected")
        return web.Response(text=INFORM_RESPONSE, content_type="text/xml")

    recorder.empty_posts += 1
    if recorder.never_close:
        return web.Response(text=INFORM_RESPONSE, content_type="text/xml")
    return web.Response(status=204)


def create_acs_app(fail_serials: Iterable[str] = (), never_close: bool = False) -> web.Application:
    app = web.Application()
    app[ACS_RECORDER] = AcsRecorder(fail_serials=set(fail_serials), never_close=never_close)
    app.router.add_post("/", _handle)
    return app
