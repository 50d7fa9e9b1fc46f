# *-* coding: utf-8 *-*
import logging
import datetime

import attr

from cmsverify import signature
from cmsverify.exceptions import Untrusted

logger = logging.getLogger(__name__)

MAX_CHAIN_DEPTH = 10


@attr.s(frozen=True, slots=True)
class Trusted(object):
    """A trust path, signer first and trust anchor last."""

    chain = attr.ib(converter=tuple)

    @property
    def anchor(self):
        return self.chain[-1]


def utcnow():
    return datetime.datetime.now(tz=datetime.timezone.utc)


class ChainValidator(object):
    def __init__(self, max_depth=MAX_CHAIN_DEPTH):
        if max_depth < 1:
            raise ValueError("max_depth must be positive")
        self.max_depth = max_depth

    def candidates(self, cert, available, trust_store):
        """
        Possible issuers of ``cert``: embedded certificates before anchors,
        those matching the authority key identifier first.
        """
        found = [
            other for other in available
            if other.subject_name == cert.issuer_name
        ]
        found.extend(trust_store.issuers_of(cert))
        aki = cert.authority_key_identifier
        if aki is not None:
            found.sort(key=lambda other: other.key_identifier != aki)
        return found

    def can_issue(self, issuer) -> bool:
        if issuer.is_ca is False:
            return False
        if issuer.key_usage is not None and "key_cert_sign" not in issuer.key_usage:
            return False
        return True

    def find_issuer(self, cert, available, trust_store):
        for candidate in self.candidates(cert, available, trust_store):
            if candidate.identity == cert.identity:
                continue
            if not self.can_issue(candidate):
                logger.debug("%r may not issue certificates", candidate)
                continue
            if signature.verify_certificate(cert, candidate):
                return candidate
            logger.debug("%r did not sign %r", candidate, cert)
        return None

    def validate(self, cert, available, trust_store, moment=None) -> Trusted:
        """
        Build a path from ``cert`` to an anchor of ``trust_store``.

        Parameters:
            cert: certificate to validate.
            available: other certificates usable as intermediates.
            trust_store: cmsverify.truststore.TrustStore.
            moment: aware datetime the validity windows are checked at,
                defaults to now.

        Returns:
            Trusted holding the path.

        Raises:
            Untrusted: reason is one of "no path", "cycle", "expired", "too long".
        """
        if moment is None:
            moment = utcnow()
        elif moment.tzinfo is None:
            moment = moment.replace(tzinfo=datetime.timezone.utc)
        chain = [cert]
        seen = {cert.identity}
        current = cert
        while True:
            if not current.valid_at(moment):
                raise Untrusted("expired", "%r is valid from %s to %s" % (
                    current, current.not_before, current.not_after))
            if current in trust_store:
                return Trusted(chain)
            if len(chain) >= self.max_depth:
                raise Untrusted("too long", "more than %d certificates" % self.max_depth)
            issuer = self.find_issuer(current, available, trust_store)
            if issuer is None:
                raise Untrusted("no path", "no issuer found for %r" % (current,))
            if issuer.identity in seen:
                raise Untrusted("cycle", "%r appears twice" % (issuer,))
            seen.add(issuer.identity)
            chain.append(issuer)
            current = issuer


def validate(cert, available, trust_store, moment=None, max_depth=MAX_CHAIN_DEPTH) -> Trusted:
    return ChainValidator(max_depth).validate(cert, available, trust_store, moment)
