# core/address_lookup.py
# Postal code → address lookup against a ViaCEP-compatible service.
# Advisory only: used to prefill profile address fields, never by the crew engine.

import logging
import re

import requests
from django.conf import settings
from rest_framework import status

from .exceptions import CrewError, ValidationError

logger = logging.getLogger("crew.core")

POSTAL_CODE_DIGITS = 8


class AddressNotFound(CrewError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "No address found for this postal code."
    default_code = "address_not_found"


class AddressLookupUnavailable(CrewError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "Address lookup is temporarily unavailable."
    default_code = "address_lookup_unavailable"


def clean_postal_code(postal_code: str) -> str:
    digits = re.sub(r"\D", "", postal_code or "")
    if len(digits) != POSTAL_CODE_DIGITS:
        raise ValidationError({"postal_code": f"Postal code must have {POSTAL_CODE_DIGITS} digits."})
    return digits


def lookup(postal_code: str) -> dict:
    """
    Resolve a postal code to {"postal_code", "street", "city", "region"}.

    The street line joins the street and neighbourhood the way the
    service returns them ("Rua X, Centro").
    """
    digits = clean_postal_code(postal_code)
    url = settings.ADDRESS_LOOKUP_URL.format(postal_code=digits)

    try:
        res = requests.get(url, timeout=settings.ADDRESS_LOOKUP_TIMEOUT)
    except requests.RequestException as e:
        logger.warning(f"Address lookup failed for {digits}: {e}")
        raise AddressLookupUnavailable()

    if res.status_code == 404:
        raise AddressNotFound()
    if res.status_code != 200:
        logger.warning(f"Address lookup returned HTTP {res.status_code} for {digits}")
        raise AddressLookupUnavailable()

    try:
        data = res.json()
    except ValueError:
        logger.warning(f"Address lookup returned a non-JSON body for {digits}")
        raise AddressLookupUnavailable()

    if not isinstance(data, dict) or data.get("erro"):
        raise AddressNotFound()

    street = data.get("logradouro") or ""
    district = data.get("bairro") or ""
    if street and district:
        street = f"{street}, {district}"
    elif district:
        street = district

    return {
        "postal_code": digits,
        "street": street,
        "city": data.get("localidade") or "",
        "region": data.get("uf") or "",
    }
