# *-* coding: utf-8 *-*
import logging

import attr

from cmsverify import certificate, container, signature
from cmsverify.chain import ChainValidator, MAX_CHAIN_DEPTH
from cmsverify.truststore import TrustStore
from cmsverify.exceptions import (
    DigestMismatch,
    MalformedContainer,
    SignatureMismatch,
    Untrusted,
    VerificationError,
)

logger = logging.getLogger(__name__)

# signer policies
ANY = "any"
ALL = "all"


@attr.s(frozen=True, slots=True)
class Valid(object):
    """
    Successful verification.

    Attributes:
        signer: certificate of the (first) signer that verified.
        payload: the signed content bytes.
        chain: trust path of that signer, signer first, anchor last.
        signers: certificates of every signer that verified.
    """

    signer = attr.ib()
    payload = attr.ib()
    chain = attr.ib(default=(), converter=tuple)
    signers = attr.ib(default=(), converter=tuple)

    valid = True

    def __bool__(self):
        return True


@attr.s(frozen=True, slots=True)
class Invalid(object):
    """Failed verification; ``error`` is the VerificationError behind it."""

    error = attr.ib()

    valid = False

    @property
    def reason(self) -> str:
        return self.error.reason

    @property
    def category(self) -> str:
        return self.error.category

    def __bool__(self):
        return False


class Verifier(object):
    def __init__(self, trust_store, moment=None, max_chain_depth=MAX_CHAIN_DEPTH, policy=ANY):
        """
        Parameters:
            trust_store: frozen TrustStore (see TrustStoreBuilder.freeze).
            moment: aware datetime certificate validity is checked at, default now.
            max_chain_depth: longest accepted path, anchor included.
            policy: ANY - one verified signer suffices,
                    ALL - every signer of the container must verify.
        """
        if not isinstance(trust_store, TrustStore):
            raise TypeError("trust_store must be a frozen TrustStore")
        if policy not in (ANY, ALL):
            raise ValueError("unknown signer policy %r" % (policy,))
        self.trust_store = trust_store
        self.moment = moment
        self.policy = policy
        self.validator = ChainValidator(max_chain_depth)

    def content(self, signed, datau):
        if signed.payload is not None:
            if datau is not None and bytes(datau) != signed.payload:
                raise DigestMismatch("detached content differs from the embedded payload")
            return signed.payload
        if datau is None:
            raise MalformedContainer("detached signature without content", reason="no content")
        return bytes(datau)

    def signer_certificate(self, signer_info, available):
        for cert in available:
            if signer_info.matches(cert):
                return cert
        raise Untrusted("no signer certificate", "signer certificate is not in the container")

    def verify_signer(self, signer_info, signed, content, available):
        cert = self.signer_certificate(signer_info, available)
        trusted = self.validator.validate(cert, available, self.trust_store, self.moment)

        mdData = signature.digest(signer_info.digest_algorithm, content)
        if signer_info.signed_attrs is not None:
            if signer_info.message_digest is None:
                raise DigestMismatch("signed attributes lack the message digest")
            if not signature.digests_equal(signer_info.message_digest, mdData):
                raise DigestMismatch("content does not match the message digest")
            if signer_info.signed_content_type != signed.content_type:
                raise MalformedContainer(
                    "content type attribute %r does not match %r"
                    % (signer_info.signed_content_type, signed.content_type)
                )
            signedData = signer_info.signed_attrs
        else:
            signedData = content

        if not signature.verify(
            signedData,
            signer_info.signature,
            cert,
            signer_info.digest_algorithm,
            signer_info.signature_algorithm,
        ):
            raise SignatureMismatch("signature of %r does not verify" % (cert,))
        return cert, trusted

    def verify(self, datas: bytes, datau=None, extra_certs=()):
        """
        Verify a PKCS#7/CMS signed-data container.

        Parameters:
            datas: the container, DER or PEM.
            datau: detached content; optional when the container embeds it.
            extra_certs: additional untrusted certificates (Certificate or
                DER/PEM bytes) usable to find the signer and intermediates.

        Returns:
            Valid or Invalid, never raises for bad input.
        """
        try:
            signed = container.load(datas)
            content = self.content(signed, datau)
            available = signed.certificates + tuple(
                cert if isinstance(cert, certificate.Certificate) else certificate.load(cert)
                for cert in extra_certs
            )
        except VerificationError as ex:
            logger.debug("rejected container: %s", ex)
            return Invalid(ex)

        passed = []
        error = None
        for index, signer_info in enumerate(signed.signer_infos):
            try:
                passed.append(self.verify_signer(signer_info, signed, content, available))
            except VerificationError as ex:
                logger.debug("signer %d rejected: %s", index, ex)
                error = ex
                if self.policy == ALL:
                    return Invalid(ex)
                continue
            if self.policy == ANY:
                break

        if not passed:
            return Invalid(error or Untrusted("no valid signer"))
        cert, trusted = passed[0]
        return Valid(
            signer=cert,
            payload=content,
            chain=trusted.chain,
            signers=[signer for signer, _ in passed],
        )


def verify(datas: bytes, trust_store, datau=None, extra_certs=(), **options):
    """
    Verify signed data against ``trust_store``.

    :param datas: PKCS#7/CMS container as bytes.
    :param trust_store: frozen cmsverify.truststore.TrustStore.
    :param datau: detached content, if the container does not embed it.
    :param extra_certs: additional untrusted certificates.
    :param options: moment, max_chain_depth and policy, see Verifier.
    :return: Valid(signer, payload, ...) or Invalid(error)
    """
    return Verifier(trust_store, **options).verify(datas, datau, extra_certs)
