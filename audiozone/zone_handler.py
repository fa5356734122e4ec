"""Routing and answering of the HTTP requests of one client connection."""
import asyncio
from http import HTTPStatus
import logging
from typing import TYPE_CHECKING, Any, List, Optional
from urllib.parse import parse_qs, urlparse

import async_timeout
import h11

from .const import HAP_REPR_CHARS, HAP_REPR_STATUS, HAP_SERVER_STATUS
from .util import from_hap_json, to_hap_json

if TYPE_CHECKING:
    from .driver import ZoneDriver

logger = logging.getLogger(__name__)

# Host bridges give up on a request after 10 seconds.
RESPONSE_TIMEOUT = 9

JSON_CONTENT_TYPE = "application/hap+json"


class ZoneResponse:
    """What is sent back for one request.

    A response whose ``task`` is set is not complete before the task is done.
    """

    def __init__(self):
        self.status_code = HTTPStatus.INTERNAL_SERVER_ERROR.value
        self.reason = HTTPStatus.INTERNAL_SERVER_ERROR.phrase
        self.headers = []
        self.body = b""
        self.task: Optional[asyncio.Future] = None

    def __repr__(self):
        return "<ZoneResponse {} {} headers={} body={}>".format(
            self.status_code, self.reason, self.headers, self.body
        )

    def set_status(self, http_status: HTTPStatus) -> None:
        self.status_code = http_status.value
        self.reason = http_status.phrase

    def set_json(self, http_status: HTTPStatus, obj: Any) -> None:
        """Make this a json response with the given status."""
        self.set_status(http_status)
        self.headers.append(("Content-Type", JSON_CONTENT_TYPE))
        self.body = to_hap_json(obj)


class BadRequestException(Exception):
    """The request can not be understood."""


def status_response(http_status: HTTPStatus, hap_status: int) -> ZoneResponse:
    """Return a response carrying only a HAP status."""
    response = ZoneResponse()
    response.set_json(http_status, {HAP_REPR_STATUS: hap_status})
    return response


async def _complete_within(coro, timeout: float):
    async with async_timeout.timeout(timeout):
        await coro


def _parse_char_ids(query: str) -> List[str]:
    """Return the ``aid.iid`` pairs of the ``id`` query parameter."""
    params = parse_qs(query)
    if "id" not in params:
        raise BadRequestException("Missing id query parameter")
    char_ids = params["id"][0].split(",")
    for aid_iid in char_ids:
        parts = aid_iid.split(".")
        if len(parts) != 2 or not all(part.isdigit() for part in parts):
            raise BadRequestException("Malformed id: {}".format(aid_iid))
    return char_ids


class ZoneServerHandler:
    """Answers the requests of the client at ``client_address``.

    Handlers that need the zones are answered with a response whose task
    completes it, so the protocol can wait for it without blocking the loop.
    """

    ROUTES = {
        ("GET", "/accessories"): "handle_accessories",
        ("GET", "/characteristics"): "handle_get_characteristics",
        ("PUT", "/characteristics"): "handle_set_characteristics",
    }

    def __init__(self, driver, client_address):
        self.driver: "ZoneDriver" = driver
        self.client_address = client_address

    def dispatch(
        self, request: h11.Request, body: Optional[bytes] = None
    ) -> ZoneResponse:
        """Route the request to its handler and return the response."""
        method = request.method.decode()
        url = urlparse(request.target.decode())
        logger.debug(
            "%s: Request %s %s", self.client_address, method, request.target
        )

        handler_name = self.ROUTES.get((method, url.path))
        if handler_name is None:
            logger.debug(
                "%s: No handler for %s %s", self.client_address, method, url.path
            )
            return status_response(
                HTTPStatus.NOT_FOUND, HAP_SERVER_STATUS.RESOURCE_DOES_NOT_EXIST
            )

        try:
            return getattr(self, handler_name)(url.query, body or b"")
        except BadRequestException as ex:
            logger.debug("%s: Bad request: %s", self.client_address, ex)
            return status_response(
                HTTPStatus.BAD_REQUEST, HAP_SERVER_STATUS.INVALID_VALUE_IN_REQUEST
            )
        except Exception:  # pylint: disable=broad-except
            logger.exception(
                "%s: Failed to process request for %s", self.client_address, url.path
            )
            return self.generic_failure_response()

    def generic_failure_response(self) -> ZoneResponse:
        """Return the response for a request that could not be completed."""
        return status_response(
            HTTPStatus.INTERNAL_SERVER_ERROR,
            HAP_SERVER_STATUS.SERVICE_COMMUNICATION_FAILURE,
        )

    def _deferred(self, response: ZoneResponse, coro) -> ZoneResponse:
        response.task = asyncio.ensure_future(
            _complete_within(coro, RESPONSE_TIMEOUT)
        )
        return response

    def handle_accessories(self, query, body) -> ZoneResponse:
        response = ZoneResponse()
        response.set_json(HTTPStatus.OK, self.driver.get_accessories())
        return response

    def handle_get_characteristics(self, query, body) -> ZoneResponse:
        """Read the characteristics named by the ``id`` query parameter."""
        char_ids = _parse_char_ids(query)
        response = ZoneResponse()
        return self._deferred(response, self._async_read(response, char_ids))

    async def _async_read(self, response, char_ids) -> None:
        result = await self.driver.async_get_characteristics(char_ids)
        chars = result[HAP_REPR_CHARS]
        if all(char[HAP_REPR_STATUS] == HAP_SERVER_STATUS.SUCCESS for char in chars):
            # Statuses are only sent along when one of them is a failure
            for char in chars:
                del char[HAP_REPR_STATUS]
            response.set_json(HTTPStatus.OK, result)
        else:
            response.set_json(HTTPStatus.MULTI_STATUS, result)

    def handle_set_characteristics(self, query, body) -> ZoneResponse:
        """Write the characteristics listed in the json body."""
        try:
            requested = from_hap_json(body.decode("utf-8"))
        except ValueError as ex:
            raise BadRequestException("Body is not json: {}".format(ex)) from ex
        if not isinstance(requested, dict) or not isinstance(
            requested.get(HAP_REPR_CHARS), list
        ):
            raise BadRequestException("Body has no characteristics list")
        logger.debug("%s: Set characteristics: %s", self.client_address, requested)
        response = ZoneResponse()
        return self._deferred(response, self._async_write(response, requested))

    async def _async_write(self, response, requested) -> None:
        result = await self.driver.async_set_characteristics(
            requested, self.client_address
        )
        if result is None:
            response.set_status(HTTPStatus.NO_CONTENT)
        else:
            response.set_json(HTTPStatus.MULTI_STATUS, result)
