"""Masking helpers for personal data (LGPD).

Used before personal fields reach logs or external payloads. Every helper
returns ``None`` for empty input and returns the value unchanged when it is
too short to be a valid document/contact.
"""

from __future__ import annotations

import re
from typing import TypedDict

_NON_DIGITS = re.compile(r"\D")
_CITY_STATE_SUFFIX = re.compile(r"([^,]+)\s*-\s*([A-Z]{2})\s*$")


def _digits(value: str) -> str:
    return _NON_DIGITS.sub("", value)


def mask_cpf(cpf: str | None) -> str | None:
    """Mask a CPF keeping the first 3 and last 2 digits.

    Examples:
        >>> mask_cpf("123.456.789-00")
        '123.***.***-00'
        >>> mask_cpf("123")
        '123'
    """

    if not cpf:
        return None

    cleaned = _digits(cpf)
    if len(cleaned) < 11:
        return cpf
    return f"{cleaned[:3]}.***.***-{cleaned[-2:]}"


def mask_cnpj(cnpj: str | None) -> str | None:
    """Mask a CNPJ keeping the first 2 and last 2 digits.

    Examples:
        >>> mask_cnpj("12.345.678/0001-90")
        '12.***.***/*****-90'
    """

    if not cnpj:
        return None

    cleaned = _digits(cnpj)
    if len(cleaned) < 14:
        return cnpj
    return f"{cleaned[:2]}.***.***/*****-{cleaned[-2:]}"


def mask_phone(phone: str | None) -> str | None:
    """Mask a phone number keeping the area code and last 4 digits.

    Examples:
        >>> mask_phone("(11) 98765-4321")
        '(11) *****-4321'
    """

    if not phone:
        return None

    cleaned = _digits(phone)
    if len(cleaned) < 10:
        return phone
    return f"({cleaned[:2]}) *****-{cleaned[-4:]}"


def mask_email(email: str | None) -> str | None:
    """Mask the local part of an e-mail keeping its first and last letter.

    Examples:
        >>> mask_email("usuario@dominio.com")
        'u***o@dominio.com'
        >>> mask_email("a@b.com")
        'a@b.com'
    """

    if not email:
        return None

    local_part, _, domain = email.partition("@")
    if not domain or len(local_part) < 2:
        return email
    return f"{local_part[0]}***{local_part[-1]}@{domain}"


def mask_crp(crp: str | None) -> str | None:
    """Mask a CRP (psychologist registration) keeping region and last 2 digits.

    Examples:
        >>> mask_crp("06/12345")
        '06/***45'
    """

    if not crp:
        return None

    cleaned = _digits(crp)
    if len(cleaned) < 5:
        return crp
    return f"{cleaned[:2]}/***{cleaned[-2:]}"


def mask_name(name: str | None) -> str | None:
    """Keep only the initial of each name part.

    Examples:
        >>> mask_name("João Silva")
        'J*** S***'
    """

    if not name:
        return None

    parts = name.strip().split(" ")
    return " ".join(part if len(part) <= 1 else f"{part[0]}***" for part in parts)


def mask_address(address: str | None) -> str | None:
    """Reduce an address to its city and state when recognizable.

    Examples:
        >>> mask_address("Rua das Flores, 123, Centro, São Paulo - SP")
        '***, São Paulo - SP'
    """

    if not address:
        return None

    match = _CITY_STATE_SUFFIX.search(address)
    if match:
        return f"***, {match.group(1).strip()} - {match.group(2)}"

    if len(address) > 15:
        return "*** " + address[-10:]
    return "***"


class PatientData(TypedDict):
    name: str | None
    cpf: str | None
    phone: str | None
    email: str | None
    address: str | None


class PsychologistData(TypedDict):
    name: str | None
    cpf: str | None
    crp: str | None
    phone: str | None
    email: str | None
    clinic_name: str | None
    clinic_cnpj: str | None
    clinic_address: str | None
    clinic_phone: str | None


def mask_patient_data(data: PatientData, *, keep_name: bool = False) -> PatientData:
    """Mask every personal field of a patient record."""

    return PatientData(
        name=data["name"] if keep_name else mask_name(data["name"]),
        cpf=mask_cpf(data["cpf"]),
        phone=mask_phone(data["phone"]),
        email=mask_email(data["email"]),
        address=mask_address(data["address"]),
    )


def mask_psychologist_data(
    data: PsychologistData,
    *,
    keep_name: bool = False,
    keep_crp: bool = False,
) -> PsychologistData:
    """Mask every personal field of a psychologist profile.

    The clinic name is public information and is kept as-is.
    """

    return PsychologistData(
        name=data["name"] if keep_name else mask_name(data["name"]),
        cpf=mask_cpf(data["cpf"]),
        crp=data["crp"] if keep_crp else mask_crp(data["crp"]),
        phone=mask_phone(data["phone"]),
        email=mask_email(data["email"]),
        clinic_name=data["clinic_name"],
        clinic_cnpj=mask_cnpj(data["clinic_cnpj"]),
        clinic_address=mask_address(data["clinic_address"]),
        clinic_phone=mask_phone(data["clinic_phone"]),
    )
