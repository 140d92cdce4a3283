import re
import time
from abc import ABC
from datetime import datetime
from http import HTTPStatus
from typing import Any, Dict, NoReturn, Optional

import requests

from cosmos_exporter.logging import logger


class Service(ABC):  # noqa: B024
    """General class for handling node API services."""

    _base_url = None
    timeout = 30
    supported_requests: Dict[str, str] = {}

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[int] = None) -> None:
        if base_url:
            self._base_url = base_url.rstrip('/')
        if timeout:
            self.timeout = timeout
        self.last_response = None
        self.last_response_time = None

    def get_name(self) -> str:
        name = self.__class__.__name__
        name = name.replace('API', 'api')
        return re.sub(r'(?<!^)(?=[A-Z])', '_', name).lower()

    def build_request_url(self, request_method: str, **params: Any) -> str:
        path_url = self.supported_requests.get(request_method)
        if path_url:
            return self.base_url + path_url.format(**params)
        return self.base_url

    @property
    def base_url(self) -> Optional[str]:
        return self._base_url

    def get_header(self) -> Dict[str, str]:
        return {}

    def request(
            self,
            request_method: str,
            headers: Optional[Dict[str, str]] = None,
            timeout: Optional[int] = None,
            **params: Any
    ) -> Dict[str, Any]:
        request_url = self.build_request_url(request_method, **params)

        if not request_url:
            return {}

        if not headers:
            headers = self.get_header() or {}

        start_time = time.time()
        response = requests.get(
            request_url,
            headers=headers,
            timeout=timeout or self.timeout,
        )
        elapsed_time = time.time() - start_time
        logger.debug('%s %s -> %s in %.3fs', self.get_name(), request_method, response.status_code, elapsed_time)

        self.last_response = response
        self.last_response_time = datetime.now()

        if not HTTPStatus.OK <= response.status_code <= HTTPStatus.CREATED:
            self.process_error_response(response)

        return response.json()

    def process_error_response(self, response: requests.Response) -> NoReturn:
        if response.status_code == HTTPStatus.NOT_FOUND:
            raise NotFound(f'Error 404: {response.text}')
        if response.status_code == HTTPStatus.INTERNAL_SERVER_ERROR:
            raise InternalServerError(f'Error 500: Internal Server Error. {response.text}')
        if response.status_code == HTTPStatus.BAD_GATEWAY:
            raise BadGateway('Error 502: Bad Gateway.')
        if response.status_code == HTTPStatus.GATEWAY_TIMEOUT:
            raise GatewayTimeOut('Error 504: Gateway timeout.')
        if response.status_code == HTTPStatus.FORBIDDEN:
            raise Forbidden('Error 403: Forbidden.')
        if response.status_code == HTTPStatus.TOO_MANY_REQUESTS:
            raise RateLimitError('Too Many Requests.')
        raise APIError(f'Following error occurred: {response.text}, status code: {response.status_code}.')


# Exceptions
class APIError(Exception):
    pass


class NotFound(APIError):  # noqa: N818
    pass


class RateLimitError(APIError):
    pass


class InternalServerError(APIError):
    pass


class BadGateway(APIError):  # noqa: N818
    pass


class Forbidden(APIError):  # noqa: N818
    pass


class GatewayTimeOut(APIError):  # noqa: N818
    pass


class ParseError(APIError):
    pass
