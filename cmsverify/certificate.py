# *-* coding: utf-8 *-*
import hashlib
import logging

import attr
from asn1crypto import x509, pem
from cryptography.exceptions import UnsupportedAlgorithm as CryptographyUnsupported
from cryptography.hazmat.primitives import serialization

from cmsverify import signature
from cmsverify.exceptions import (
    MalformedCertificate,
    UnsupportedAlgorithm,
    VerificationError,
    PARSE_ERRORS,
)

logger = logging.getLogger(__name__)


@attr.s(frozen=True, slots=True, eq=False, repr=False)
class Certificate(object):
    """Decoded X.509 certificate. Equality and hashing follow the DER encoding."""

    serial_number = attr.ib()
    issuer_name = attr.ib()
    subject_name = attr.ib()
    not_before = attr.ib()
    not_after = attr.ib()
    public_key_algorithm = attr.ib()
    public_key_bytes = attr.ib()
    signature_algorithm = attr.ib()
    signature_bytes = attr.ib()
    tbs_bytes = attr.ib()
    raw = attr.ib()
    is_ca = attr.ib(default=None)
    key_usage = attr.ib(default=None)
    key_identifier = attr.ib(default=None)
    authority_key_identifier = attr.ib(default=None)

    @property
    def fingerprint(self) -> bytes:
        return hashlib.sha256(self.raw).digest()

    @property
    def identity(self) -> tuple:
        """Subject and key hash; re-encoded copies of a root share it."""
        return (self.subject_name.hashable, hashlib.sha256(self.public_key_bytes).digest())

    @property
    def self_issued(self) -> bool:
        return self.subject_name == self.issuer_name

    def valid_at(self, moment) -> bool:
        return self.not_before <= moment <= self.not_after

    def public_key(self):
        return serialization.load_der_public_key(self.public_key_bytes)

    def __eq__(self, other):
        if not isinstance(other, Certificate):
            return NotImplemented
        return self.raw == other.raw

    def __hash__(self):
        return hash(self.raw)

    def __repr__(self):
        return "<Certificate subject=%r serial=%d>" % (
            self.subject_name.human_friendly, self.serial_number
        )


def _unarmor(data):
    if pem.detect(data):
        try:
            _, _, data = pem.unarmor(data)
        except PARSE_ERRORS as ex:
            raise MalformedCertificate(str(ex)) from None
    return data


def from_asn1(cert: x509.Certificate) -> Certificate:
    """
    Build a Certificate from an asn1crypto certificate, parsing every field.
    """
    try:
        key_oid = cert["tbs_certificate"]["subject_public_key_info"]["algorithm"]["algorithm"]
        if key_oid.native not in signature.PUBLIC_KEY_ALGORITHMS:
            raise UnsupportedAlgorithm("public key algorithm %r" % (key_oid.native,))
        # force the lazy parser over the whole structure
        cert.native
        tbs = cert["tbs_certificate"]
        validity = tbs["validity"]
        public_key_info = cert.public_key
        public_key_algorithm = public_key_info.algorithm
        public_key_bytes = public_key_info.dump()
        signature_algorithm = cert["signature_algorithm"]
        basic_constraints = cert.basic_constraints_value
        key_usage = cert.key_usage_value
        decoded = Certificate(
            serial_number=cert.serial_number,
            issuer_name=cert.issuer,
            subject_name=cert.subject,
            not_before=validity["not_before"].native,
            not_after=validity["not_after"].native,
            public_key_algorithm=public_key_algorithm,
            public_key_bytes=public_key_bytes,
            signature_algorithm=signature_algorithm,
            signature_bytes=cert["signature_value"].native,
            tbs_bytes=tbs.dump(),
            raw=cert.dump(),
            is_ca=None if basic_constraints is None else bool(basic_constraints["ca"].native),
            key_usage=None if key_usage is None else frozenset(key_usage.native),
            key_identifier=cert.key_identifier,
            authority_key_identifier=cert.authority_key_identifier,
        )
    except VerificationError:
        raise
    except PARSE_ERRORS as ex:
        raise MalformedCertificate(str(ex)) from None

    if not public_key_bytes:
        raise MalformedCertificate("empty public key")
    sighash = signature.hash_name(signature_algorithm)
    if sighash is not None:
        signature.hash_class(sighash)
    try:
        decoded.public_key()
    except CryptographyUnsupported as ex:
        raise UnsupportedAlgorithm(str(ex)) from None
    except PARSE_ERRORS as ex:
        raise MalformedCertificate("public key: %s" % (ex,)) from None
    return decoded


def load(data: bytes) -> Certificate:
    """
    Decode a DER or PEM encoded certificate.

    Raises:
        MalformedCertificate: the bytes are not a well-formed certificate.
        UnsupportedAlgorithm: the key or signature algorithm is not supported.
    """
    if not isinstance(data, (bytes, bytearray)):
        raise MalformedCertificate("expected bytes, got %s" % type(data).__name__)
    data = _unarmor(bytes(data))
    try:
        cert = x509.Certificate.load(data, strict=True)
    except PARSE_ERRORS as ex:
        raise MalformedCertificate(str(ex)) from None
    return from_asn1(cert)


def load_all(data: bytes) -> list:
    """Decode every certificate of a PEM bundle, or a single DER certificate."""
    if not pem.detect(data):
        return [load(data)]
    certs = []
    try:
        for type_name, _, der_bytes in pem.unarmor(data, multiple=True):
            if type_name != "CERTIFICATE":
                logger.debug("skipping PEM block %s", type_name)
                continue
            certs.append(load(der_bytes))
    except VerificationError:
        raise
    except PARSE_ERRORS as ex:
        raise MalformedCertificate(str(ex)) from None
    return certs
