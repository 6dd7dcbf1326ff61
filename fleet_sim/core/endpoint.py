"""Default simulated endpoint: a thin CWMP-style HTTP session.

The endpoint opens a session with an Inform describing the device and then
keeps posting empty requests until the management server closes the session.
RPCs sent by the server are acknowledged with an empty request and not
executed.
"""

from __future__ import annotations

import datetime
from typing import Optional
from xml.sax.saxutils import escape

import aiohttp

from .data_model import DeviceModel, LeafEntry
from .errors import EndpointSessionError
from .logging_utils import get_module_logger

logger = get_module_logger("HttpEndpoint")

EXIT_SESSION_LIMIT = 2

_INFORM_PARAMETERS = (
    "DeviceInfo.HardwareVersion",
    "DeviceInfo.SoftwareVersion",
    "DeviceInfo.ProvisioningCode",
    "ManagementServer.ParameterKey",
    "ManagementServer.ConnectionRequestURL",
)

_INFORM_TEMPLATE = """<?xml version="1.0" encoding="UTF-8"?>
<soap-env:Envelope xmlns:soap-enc="http://schemas.xmlsoap.org/soap/encoding/" xmlns:soap-env="http://schemas.xmlsoap.org/soap/envelope/" xmlns:xsd="http://www.w3.org/2001/XMLSchema" xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance" xmlns:cwmp="urn:dslforum-org:cwmp-1-0">
<soap-env:Header><cwmp:ID soap-env:mustUnderstand="1">{session_id}</cwmp:ID></soap-env:Header>
<soap-env:Body><cwmp:Inform>
<DeviceId><Manufacturer>{manufacturer}</Manufacturer><OUI>{oui}</OUI><ProductClass>{product_class}</ProductClass><SerialNumber>{serial}</SerialNumber></DeviceId>
<Event soap-enc:arrayType="cwmp:EventStruct[1]"><EventStruct><EventCode>{event}</EventCode><CommandKey></CommandKey></EventStruct></Event>
<MaxEnvelopes>1</MaxEnvelopes>
<CurrentTime>{current_time}</CurrentTime>
<RetryCount>0</RetryCount>
<ParameterList soap-enc:arrayType="cwmp:ParameterValueStruct[{count}]">{parameters}</ParameterList>
</cwmp:Inform></soap-env:Body>
</soap-env:Envelope>"""


def build_inform(model: DeviceModel, identity: str, *, event: str = "1 BOOT", current_time: Optional[str] = None) -> str:
    """Render the Inform for ``identity``; the shared model is only read."""
    root = model.root
    parameters = []
    for suffix in _INFORM_PARAMETERS:
        path = f"{root}.{suffix}"
        entry = model.get(path)
        if not isinstance(entry, LeafEntry):
            continue
        value_type = entry.value_type or "xsd:string"
        parameters.append(
            f'<ParameterValueStruct><Name>{escape(path)}</Name>'
            f'<Value xsi:type="{escape(value_type)}">{escape(entry.value)}</Value></ParameterValueStruct>'
        )

    return _INFORM_TEMPLATE.format(
        session_id=escape(identity),
        manufacturer=escape(model.value_of(f"{root}.DeviceInfo.Manufacturer", "") or ""),
        oui=escape(model.value_of(f"{root}.DeviceInfo.ManufacturerOUI", "") or ""),
        product_class=escape(model.value_of(f"{root}.DeviceInfo.ProductClass", "") or ""),
        serial=escape(identity),
        event=escape(event),
        current_time=escape(current_time or datetime.datetime.now(datetime.timezone.utc).isoformat()),
        count=len(parameters),
        parameters="".join(parameters),
    )


class HttpEndpoint:
    """Runs one device session against the management server."""

    def __init__(self, max_exchanges: int = 32, timeout: Optional[aiohttp.ClientTimeout] = None) -> None:
        self.max_exchanges = max_exchanges
        self.timeout = timeout or aiohttp.ClientTimeout(total=None, sock_connect=30, sock_read=120)

    async def run(self, model: DeviceModel, identity: str, acs_url: str) -> int:
        log = logger.getChild(identity)
        jar = aiohttp.CookieJar(unsafe=True)
        async with aiohttp.ClientSession(timeout=self.timeout, cookie_jar=jar) as session:
            body = build_inform(model, identity)
            for exchange in range(1, self.max_exchanges + 1):
                reply = await self._post(session, acs_url, body)
                if reply is None:
                    log.debug("Session closed by server after %d exchanges", exchange)
                    return 0
                body = ""

        log.warning("Session still open after %d exchanges, giving up", self.max_exchanges)
        return EXIT_SESSION_LIMIT

    async def _post(self, session: aiohttp.ClientSession, url: str, body: str) -> Optional[str]:
        headers = {"Content-Type": 'text/xml; charset="utf-8"'}
        if body:
            headers["SOAPAction"] = ""
        try:
            async with session.post(url, data=body.encode("utf-8"), headers=headers) as resp:
                text = await resp.text()
                if resp.status >= 400:
                    raise EndpointSessionError(f"ACS answered HTTP {resp.status}")
                if resp.status == 204 or not text.strip():
                    return None
                return text
        except aiohttp.ClientError as exc:
            raise EndpointSessionError(f"HTTP session to {url} failed: {exc}") from exc


__all__ = ["EXIT_SESSION_LIMIT", "HttpEndpoint", "build_inform"]
