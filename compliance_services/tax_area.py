"""
compliance_services.tax_area -- Client for the remote tax-area lookup service.

Responsibility:
    Build the SOAP request for a shipping address by template
    substitution, POST it, and walk the response document for the single
    normalized postal address.

Architecture position:
    Services -- the one outbound HTTP boundary.  Consumed by
    ``compliance_services.address_validation``.

Invariants enforced:
    - Field values are XML-escaped before substitution.
    - Zero or several ``TaxAreaResult`` elements mean no usable address.
    - Element matching ignores XML namespaces.

Failure modes:
    - TaxServiceError on transport errors, non-200 responses and
      unparseable bodies.
    - Missing trusted id or service URL is logged and yields no result.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from xml.sax.saxutils import escape

import requests

from compliance_config.schema import CompliancePreferences
from compliance_kernel.exceptions import TaxServiceError
from compliance_kernel.logging_config import get_logger
from compliance_modules.orders.models import ShippingAddress, TaxAreaAddress

logger = get_logger("services.tax_area")

REQUEST_TEMPLATE = """<?xml version="1.0" encoding="UTF-8"?>
<soapenv:Envelope xmlns:soapenv="http://schemas.xmlsoap.org/soap/envelope/" xmlns:urn="urn:vertexinc:o-series:tps:7:0">
  <soapenv:Header/>
  <soapenv:Body>
    <urn:VertexEnvelope>
      <urn:Login>
        <urn:TrustedId>_TRUSTED_ID_</urn:TrustedId>
      </urn:Login>
      <urn:TaxAreaRequest>
        <urn:TaxAreaLookup>
          <urn:PostalAddress>
            <urn:StreetAddress1>_ADDRESS1_</urn:StreetAddress1>
            <urn:StreetAddress2>_ADDRESS2_</urn:StreetAddress2>
            <urn:City>_CITY_</urn:City>
            <urn:MainDivision>_STATE_</urn:MainDivision>
            <urn:PostalCode>_ZIP_</urn:PostalCode>
            <urn:Country>_COUNTRY_</urn:Country>
          </urn:PostalAddress>
        </urn:TaxAreaLookup>
      </urn:TaxAreaRequest>
    </urn:VertexEnvelope>
  </soapenv:Body>
</soapenv:Envelope>
"""

_RESPONSE_PATH = ("Envelope", "Body", "VertexEnvelope", "TaxAreaResponse")


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _children(element: ET.Element, name: str) -> list[ET.Element]:
    return [child for child in element if _local(child.tag) == name]


def _text(element: ET.Element, name: str) -> str:
    found = _children(element, name)
    if not found or found[0].text is None:
        return ""
    return found[0].text.strip()


def address_fields(address: ShippingAddress) -> dict[str, str]:
    """Template placeholders for a shipping address."""
    return {
        "ADDRESS1": address.address1 or "",
        "ADDRESS2": address.address2 or "",
        "CITY": address.city or "",
        "STATE": address.state or "",
        "ZIP": address.zip_code or "",
        "COUNTRY": address.country or "",
    }


def render_request(template: str, trusted_id: str, address: ShippingAddress) -> str:
    """Substitute the trusted id and address fields into ``template``."""
    payload = template.replace("_TRUSTED_ID_", escape(trusted_id))
    for field, value in address_fields(address).items():
        payload = payload.replace(f"_{field}_", escape(value))
    return payload


def parse_tax_area_response(body: bytes | str) -> TaxAreaAddress | None:
    """
    The normalized address in a tax-area response, if exactly one was found.

    Raises:
        ET.ParseError: ``body`` is not well-formed XML.
    """
    root = ET.fromstring(body)
    if _local(root.tag) != _RESPONSE_PATH[0]:
        return None

    node = root
    for name in _RESPONSE_PATH[1:]:
        found = _children(node, name)
        if not found:
            return None
        node = found[0]

    results = _children(node, "TaxAreaResult")
    if len(results) != 1:
        logger.info("tax_area_result_ambiguous", extra={"result_count": len(results)})
        return None

    postal = _children(results[0], "PostalAddress")
    if not postal:
        return None
    postal_address = postal[0]

    return TaxAreaAddress(
        street_address1=_text(postal_address, "StreetAddress1"),
        street_address2=_text(postal_address, "StreetAddress2"),
        city=_text(postal_address, "City"),
        main_division=_text(postal_address, "MainDivision"),
        postal_code=_text(postal_address, "PostalCode"),
        country=_text(postal_address, "Country"),
    )


class TaxAreaClient:
    """Synchronous client for the tax-area lookup endpoint."""

    def __init__(
        self,
        preferences: CompliancePreferences,
        session: requests.Session | None = None,
        template: str = REQUEST_TEMPLATE,
    ):
        self.preferences = preferences
        self._session = session or requests.Session()
        self._template = template

    def build_request(self, address: ShippingAddress) -> str | None:
        trusted_id = self.preferences.tax_trusted_id
        if not trusted_id:
            logger.warning("tax_trusted_id_missing")
            return None
        return render_request(self._template, trusted_id, address)

    def lookup(self, address: ShippingAddress) -> TaxAreaAddress | None:
        """
        Normalized address for ``address``, or None when none was found.

        Raises:
            TaxServiceError: the service could not be reached or answered
                with an error.
        """
        url = self.preferences.tax_service_url
        if not url:
            logger.error("tax_service_url_missing")
            return None

        payload = self.build_request(address)
        if payload is None:
            return None

        try:
            response = self._session.post(
                url,
                data=payload.encode("utf-8"),
                headers={"Content-Type": "text/xml"},
                timeout=self.preferences.tax_service_timeout_seconds,
            )
        except requests.RequestException as exc:
            logger.error(
                "tax_service_request_failed",
                extra={"url": url, "error": str(exc)},
            )
            raise TaxServiceError(url, None) from exc

        if response.status_code != 200:
            logger.error(
                "tax_service_error_response",
                extra={"url": url, "status_code": response.status_code},
            )
            raise TaxServiceError(url, response.status_code)

        try:
            normalized = parse_tax_area_response(response.content)
        except ET.ParseError as exc:
            logger.error("tax_service_malformed_response", extra={"url": url})
            raise TaxServiceError(url, response.status_code) from exc

        logger.info(
            "tax_area_lookup_completed",
            extra={"url": url, "found": normalized is not None},
        )
        return normalized
