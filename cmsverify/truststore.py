# *-* coding: utf-8 *-*
import logging
from types import MappingProxyType

import certifi
from asn1crypto import pem

from cmsverify import certificate
from cmsverify.exceptions import MalformedCertificate, UnsupportedAlgorithm

logger = logging.getLogger(__name__)


class TrustStore(object):
    """
    Read-only set of trust anchors.

    Instances are produced by TrustStoreBuilder.freeze() and never change
    afterwards, so one store may be shared by concurrent verifications.
    """

    __slots__ = ("_by_identity", "_by_subject")

    def __init__(self, certs=()):
        by_identity = {}
        by_subject = {}
        for cert in certs:
            if cert.identity in by_identity:
                continue
            by_identity[cert.identity] = cert
            by_subject.setdefault(cert.subject_name.hashable, []).append(cert)
        self._by_identity = MappingProxyType(by_identity)
        self._by_subject = MappingProxyType(
            {subject: tuple(certs) for subject, certs in by_subject.items()}
        )

    def __contains__(self, cert) -> bool:
        return cert.identity in self._by_identity

    def __iter__(self):
        return iter(self._by_identity.values())

    def __len__(self) -> int:
        return len(self._by_identity)

    def __repr__(self):
        return "<TrustStore %d anchors>" % len(self)

    def issuers_of(self, cert) -> tuple:
        """Anchors whose subject is the issuer named by ``cert``."""
        return self._by_subject.get(cert.issuer_name.hashable, ())


class TrustStoreBuilder(object):
    """
    Collects trusted roots, then freeze() returns an immutable TrustStore.

        builder = TrustStoreBuilder()
        builder.add_trusted_root(root_der)
        store = builder.freeze()
    """

    def __init__(self):
        self._certs = []

    def add_trusted_root(self, data: bytes) -> certificate.Certificate:
        """
        Trust one DER or PEM encoded certificate.

        Raises:
            MalformedCertificate: ``data`` is not a certificate.
            UnsupportedAlgorithm: the certificate cannot be used for verification.
        """
        cert = certificate.load(data)
        self._certs.append(cert)
        return cert

    def add_trusted_roots(self, datas) -> "TrustStoreBuilder":
        for data in datas:
            self.add_trusted_root(data)
        return self

    def add_pem_bundle(self, data: bytes, skip_unsupported=False) -> "TrustStoreBuilder":
        if skip_unsupported:
            for cert in _load_bundle(data):
                self._certs.append(cert)
        else:
            self._certs.extend(certificate.load_all(data))
        return self

    def add_system_roots(self) -> "TrustStoreBuilder":
        """Trust the Mozilla root bundle shipped with certifi."""
        with open(certifi.where(), "rb") as pems:
            return self.add_pem_bundle(pems.read(), skip_unsupported=True)

    def freeze(self) -> TrustStore:
        return TrustStore(self._certs)


def _load_bundle(data):
    for type_name, _, der_bytes in pem.unarmor(data, multiple=True):
        if type_name != "CERTIFICATE":
            continue
        try:
            yield certificate.load(der_bytes)
        except (MalformedCertificate, UnsupportedAlgorithm) as ex:
            logger.debug("skipping bundled root: %s", ex)


def build(roots=(), system=False) -> TrustStore:
    """Shortcut: a frozen store trusting ``roots`` (DER or PEM bytes)."""
    builder = TrustStoreBuilder()
    if system:
        builder.add_system_roots()
    builder.add_trusted_roots(roots)
    return builder.freeze()
