"""Certificate-authenticated client for the supplier's Balance API."""

from __future__ import annotations

import asyncio
import json
import logging
import ssl
import tempfile
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Optional

import httpx
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    NoEncryption,
    PrivateFormat,
    pkcs12,
)

from catalog_sync.config import Settings, settings as default_settings
from catalog_sync.errors import SupplierError, SupplierResponseError

log = logging.getLogger("supplier")

_BODY_PREVIEW = 500


def load_client_ssl_context(cert_path: Path, password: str | None) -> ssl.SSLContext | None:
    """Build a TLS context presenting the PKCS#12 client certificate.

    Returns ``None`` when the file is missing or unusable; the caller then
    talks to the supplier with basic auth only.
    """

    if not cert_path.is_file():
        log.warning("certificate not found: %s; continuing without client certificate", cert_path)
        return None

    try:
        raw = cert_path.read_bytes()
        key, certificate, extra = pkcs12.load_key_and_certificates(
            raw,
            password.encode("utf-8") if password else None,
        )
    except (OSError, ValueError):
        log.exception("certificate %s could not be read; continuing without it", cert_path)
        return None

    if key is None or certificate is None:
        log.warning("certificate %s has no key or leaf certificate; continuing without it", cert_path)
        return None

    chain = certificate.public_bytes(Encoding.PEM)
    for extra_cert in extra or []:
        chain += extra_cert.public_bytes(Encoding.PEM)
    key_pem = key.private_bytes(Encoding.PEM, PrivateFormat.PKCS8, NoEncryption())

    context = ssl.create_default_context()
    # ssl умеет грузить ключ только из файла
    with tempfile.TemporaryDirectory(prefix="balance-cert-") as tmp:
        cert_file = Path(tmp) / "client.crt"
        key_file = Path(tmp) / "client.key"
        cert_file.write_bytes(chain)
        key_file.write_bytes(key_pem)
        key_file.chmod(0o600)
        context.load_cert_chain(certfile=str(cert_file), keyfile=str(key_file))

    log.info("client certificate loaded: subject=%s", certificate.subject.rfc4514_string())
    return context


class SupplierTransport:
    """Issues ``POST {BALANCE_API_URL}`` requests on behalf of one process."""

    def __init__(
        self,
        config: Settings | None = None,
        *,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._settings = config or default_settings
        self._http_transport = http_transport
        self._ssl_context: ssl.SSLContext | None = None
        self._initialized = False
        self._init_lock = asyncio.Lock()

    @property
    def cert_path(self) -> Path:
        return Path(self._settings.BALANCE_API_CERT_PATH).expanduser().resolve()

    async def _ensure_initialized(self) -> None:
        if self._initialized:
            return
        async with self._init_lock:
            if self._initialized:
                return
            log.info("checking client certificate at %s", self.cert_path)
            try:
                self._ssl_context = await asyncio.to_thread(
                    load_client_ssl_context,
                    self.cert_path,
                    self._settings.BALANCE_API_CERT_PASSWORD,
                )
            except ssl.SSLError:
                log.exception("TLS context init failed; continuing without client certificate")
                self._ssl_context = None
            # Даже при ошибке не пытаемся повторно на каждом запросе
            self._initialized = True

    @property
    def has_client_certificate(self) -> bool:
        return self._ssl_context is not None

    @asynccontextmanager
    async def _client(self) -> AsyncIterator[httpx.AsyncClient]:
        timeout = httpx.Timeout(
            timeout=self._settings.BALANCE_API_TIMEOUT,
            connect=min(self._settings.HTTP_TIMEOUT_CONNECT, self._settings.BALANCE_API_TIMEOUT),
        )
        options: dict[str, Any] = {
            "timeout": timeout,
            "auth": httpx.BasicAuth(*self._settings.balance_auth),
            "headers": {"Content-Type": "application/json"},
            "verify": self._ssl_context if self._ssl_context is not None else True,
        }
        if self._http_transport is not None:
            options["transport"] = self._http_transport
        elif self._settings.HTTP_PROXY_URL:
            options["proxy"] = self._settings.HTTP_PROXY_URL

        async with httpx.AsyncClient(**options) as client:
            yield client

    async def fetch_shop_data(self, shop_id: str, request_type: str | None = None) -> Any:
        """Return the supplier payload for ``shop_id``.

        Raises :class:`SupplierError` for transport failures and
        :class:`SupplierResponseError` for error envelopes or empty bodies.
        """

        await self._ensure_initialized()
        request_type = request_type or self._settings.BALANCE_API_REQUEST_TYPE
        body = {"shop_id": shop_id, "type": request_type}
        log.info("balance request shop_id=%s type=%s mtls=%s", shop_id, request_type, self.has_client_certificate)

        try:
            async with self._client() as client:
                response = await client.post(self._settings.BALANCE_API_URL, json=body)
                response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            text = exc.response.text[:_BODY_PREVIEW]
            log.error("balance API error shop_id=%s status=%s body=%s", shop_id, status, text)
            raise SupplierError(
                f"Error from API: {status} - {text}",
                status_code=status,
                body=text,
            ) from exc
        except httpx.TimeoutException as exc:
            log.error("balance API timeout shop_id=%s", shop_id)
            raise SupplierError(f"Timeout sending request: {exc}") from exc
        except (httpx.HTTPError, ssl.SSLError) as exc:
            log.error("balance API request failed shop_id=%s: %s", shop_id, exc)
            raise SupplierError(f"Error sending request: {exc}") from exc

        return self._interpret(response, request_type)

    def _interpret(self, response: httpx.Response, request_type: str) -> Any:
        if not response.content or not response.content.strip():
            log.warning("empty response from balance API: %s", response.status_code)
            raise SupplierResponseError("Empty response from API", status_code=response.status_code)

        try:
            payload = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            text = response.text[:_BODY_PREVIEW]
            raise SupplierError(
                "Invalid JSON from API",
                status_code=response.status_code,
                body=text,
            ) from exc

        if isinstance(payload, dict):
            status = payload.get("status")
            if status == "success":
                log.info("balance API success (%s)", request_type)
                return payload.get("data")
            if status == "error":
                message = payload.get("message") or "Error from API"
                log.warning("balance API returned error (%s): %s", request_type, message)
                raise SupplierResponseError(str(message), status_code=response.status_code, body=payload)

        # Поставщик иногда отдаёт дерево без конверта
        log.info("balance API data without status envelope (%s)", request_type)
        return payload


__all__ = ["SupplierTransport", "load_client_ssl_context"]
