# *-* coding: utf-8 *-*
import logging

import attr
from asn1crypto import cms, core, pem

from cmsverify import certificate
from cmsverify.exceptions import (
    MalformedContainer,
    MalformedCertificate,
    UnsupportedAlgorithm,
    UnsupportedContentType,
    VerificationError,
    PARSE_ERRORS,
)

logger = logging.getLogger(__name__)


@attr.s(frozen=True, slots=True)
class SignerInfo(object):
    version = attr.ib()
    # (asn1crypto Name, serial number) or None for key identifier signers
    issuer_and_serial = attr.ib()
    key_identifier = attr.ib()
    digest_algorithm = attr.ib()
    # DER of the signed attributes with the SET OF tag, exactly as received
    signed_attrs = attr.ib()
    message_digest = attr.ib()
    signed_content_type = attr.ib()
    signature_algorithm = attr.ib(eq=False)
    signature = attr.ib()

    def matches(self, cert) -> bool:
        if self.issuer_and_serial is not None:
            issuer, serial = self.issuer_and_serial
            return cert.serial_number == serial and cert.issuer_name == issuer
        return self.key_identifier is not None and cert.key_identifier == self.key_identifier


@attr.s(frozen=True, slots=True)
class SignatureContainer(object):
    signer_infos = attr.ib()
    certificates = attr.ib()
    content_type = attr.ib()
    payload = attr.ib()

    @property
    def detached(self) -> bool:
        return self.payload is None


def _unarmor(data):
    if pem.detect(data):
        try:
            type_name, _, data = pem.unarmor(data)
        except PARSE_ERRORS as ex:
            raise MalformedContainer(str(ex)) from None
        if type_name not in ("PKCS7", "CMS"):
            raise MalformedContainer("unexpected PEM block %s" % type_name)
    return data


def _signed_attrs(attrs):
    """Return raw bytes, message digest and content type of signed attributes."""
    if attrs is None or isinstance(attrs, core.Void):
        return None, None, None
    message_digest = None
    content_type = None
    for attribute in attrs:
        name = attribute["type"].native
        values = attribute["values"]
        if name == "message_digest":
            if message_digest is not None or len(values) != 1:
                raise MalformedContainer("message digest attribute must be single valued")
            message_digest = values[0].native
        elif name == "content_type":
            if content_type is not None or len(values) != 1:
                raise MalformedContainer("content type attribute must be single valued")
            content_type = values[0].native
    # the signature covers the attributes re-tagged from [0] IMPLICIT to SET OF
    signed = attrs.dump()
    signed = b"\x31" + signed[1:]
    return signed, message_digest, content_type


def _signer_info(signer):
    sid = signer["sid"]
    if sid.name == "issuer_and_serial_number":
        issuer_and_serial = (sid.chosen["issuer"], sid.chosen["serial_number"].native)
        key_identifier = None
    else:
        issuer_and_serial = None
        key_identifier = sid.chosen.native
    signed_attrs, message_digest, content_type = _signed_attrs(signer["signed_attrs"])
    return SignerInfo(
        version=signer["version"].native,
        issuer_and_serial=issuer_and_serial,
        key_identifier=key_identifier,
        digest_algorithm=signer["digest_algorithm"]["algorithm"].native,
        signed_attrs=signed_attrs,
        message_digest=message_digest,
        signed_content_type=content_type,
        signature_algorithm=signer["signature_algorithm"],
        signature=signer["signature"].native,
    )


def _certificates(certs):
    if certs is None or isinstance(certs, core.Void):
        return ()
    decoded = []
    for choice in certs:
        if choice.name != "certificate":
            logger.debug("ignoring embedded %s", choice.name)
            continue
        try:
            decoded.append(certificate.from_asn1(choice.chosen))
        except UnsupportedAlgorithm as ex:
            logger.debug("ignoring embedded certificate: %s", ex)
        except MalformedCertificate as ex:
            raise MalformedContainer("embedded certificate: %s" % (ex,)) from None
    return tuple(decoded)


def load(data: bytes) -> SignatureContainer:
    """
    Decode a DER (or PEM armoured) PKCS#7/CMS ContentInfo holding SignedData.

    Embedded certificates are decoded but not validated.

    Raises:
        MalformedContainer: structural violation, truncation, missing fields.
        UnsupportedContentType: the ContentInfo does not carry signed data.
    """
    if not isinstance(data, (bytes, bytearray)):
        raise MalformedContainer("expected bytes, got %s" % type(data).__name__)
    data = _unarmor(bytes(data))
    try:
        info = cms.ContentInfo.load(data, strict=True)
        content_type = info["content_type"].native
        if content_type != "signed_data":
            raise UnsupportedContentType(str(content_type))
        signed_data = info["content"]
        # force the lazy parser over the whole structure
        signed_data.native
        encap = signed_data["encap_content_info"]
        payload = encap["content"]
        if isinstance(payload, core.Void):
            payload = None
        else:
            payload = payload.native
        signer_infos = tuple(_signer_info(signer) for signer in signed_data["signer_infos"])
        certificates = _certificates(signed_data["certificates"])
        encap_type = encap["content_type"].native
    except VerificationError:
        raise
    except PARSE_ERRORS as ex:
        raise MalformedContainer(str(ex)) from None
    if not signer_infos:
        raise MalformedContainer("no signer infos")
    return SignatureContainer(
        signer_infos=signer_infos,
        certificates=certificates,
        content_type=encap_type,
        payload=payload,
    )
