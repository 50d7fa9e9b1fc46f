# *-* coding: utf-8 *-*
import hmac
import logging

from cryptography.exceptions import InvalidSignature
from cryptography.exceptions import UnsupportedAlgorithm as CryptographyUnsupported
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding, ec

from cmsverify.exceptions import UnsupportedAlgorithm

logger = logging.getLogger(__name__)

HASHES = {
    "md5": hashes.MD5,
    "sha1": hashes.SHA1,
    "sha224": hashes.SHA224,
    "sha256": hashes.SHA256,
    "sha384": hashes.SHA384,
    "sha512": hashes.SHA512,
    "sha512_224": hashes.SHA512_224,
    "sha512_256": hashes.SHA512_256,
    "sha3_224": hashes.SHA3_224,
    "sha3_256": hashes.SHA3_256,
    "sha3_384": hashes.SHA3_384,
    "sha3_512": hashes.SHA3_512,
}

# signature scheme -> public key algorithms able to produce it
KEY_TYPES = {
    "rsassa_pkcs1v15": ("rsa",),
    "rsassa_pss": ("rsa",),
    "ecdsa": ("ec",),
    "dsa": ("dsa",),
    "ed25519": ("ed25519",),
    "ed448": ("ed448",),
}

PUBLIC_KEY_ALGORITHMS = frozenset(("rsa", "ec", "dsa", "ed25519", "ed448"))


def hash_class(name):
    try:
        return HASHES[name]
    except KeyError:
        raise UnsupportedAlgorithm("digest algorithm %r" % (name,)) from None


def digest(name, data: bytes) -> bytes:
    """Hash ``data`` with the digest algorithm named by asn1crypto (e.g. 'sha256')."""
    hasher = hashes.Hash(hash_class(name)())
    hasher.update(data)
    return hasher.finalize()


def digests_equal(expected: bytes, actual: bytes) -> bool:
    return hmac.compare_digest(expected, actual)


def scheme(signature_algorithm) -> str:
    """
    Signature scheme of an asn1crypto ``SignedDigestAlgorithm``.

    Raises UnsupportedAlgorithm for schemes this package cannot verify.
    """
    try:
        name = signature_algorithm.signature_algo
    except ValueError:
        name = signature_algorithm["algorithm"].native
    if name not in KEY_TYPES:
        raise UnsupportedAlgorithm("signature algorithm %r" % (name,))
    return name


def hash_name(signature_algorithm, digest_algorithm=None):
    """
    Hash used by the signature: the one named by the signature algorithm
    (sha256_rsa, rsassa_pss parameters...) or else ``digest_algorithm``.
    EdDSA hashes internally and yields None.
    """
    if scheme(signature_algorithm) in ("ed25519", "ed448"):
        return None
    try:
        return signature_algorithm.hash_algo
    except (ValueError, TypeError, KeyError):
        if digest_algorithm is None:
            raise UnsupportedAlgorithm(
                "no digest for %r" % (signature_algorithm["algorithm"].native,)
            ) from None
        return digest_algorithm


def _pss(parameters):
    salgo = parameters["hash_algorithm"]["algorithm"].native
    mgf = parameters["mask_gen_algorithm"]
    if mgf["algorithm"].native != "mgf1":
        raise UnsupportedAlgorithm("mask generation %r" % (mgf["algorithm"].native,))
    mgfalgo = mgf["parameters"]["algorithm"].native
    salt_length = parameters["salt_length"].native
    return (
        padding.PSS(padding.MGF1(hash_class(mgfalgo)()), salt_length),
        hash_class(salgo)(),
    )


def verify(signed_bytes: bytes, signature: bytes, cert, digest_algorithm, signature_algorithm) -> bool:
    """
    Check ``signature`` over ``signed_bytes`` with the public key of ``cert``.

    Parameters:
        signed_bytes: the exact bytes that were signed.
        signature: raw signature value.
        cert: cmsverify.certificate.Certificate of the signer.
        digest_algorithm: digest name declared by the signer (e.g. 'sha256'),
            used when the signature algorithm does not carry its own hash.
        signature_algorithm: asn1crypto ``SignedDigestAlgorithm``.

    Returns:
        True when the signature is valid. Any failure, including a key type
        that does not match the signature algorithm, yields False.
    """
    try:
        sigalgo = scheme(signature_algorithm)
        if cert.public_key_algorithm not in KEY_TYPES[sigalgo]:
            logger.debug(
                "signature algorithm %s does not match %s key of %s",
                sigalgo, cert.public_key_algorithm, cert.subject_name.human_friendly,
            )
            return False
        public_key = cert.public_key()
        if sigalgo in ("ed25519", "ed448"):
            public_key.verify(signature, signed_bytes)
        elif sigalgo == "rsassa_pss":
            pad, md = _pss(signature_algorithm["parameters"])
            public_key.verify(signature, signed_bytes, pad, md)
        else:
            md = hash_class(hash_name(signature_algorithm, digest_algorithm))()
            if sigalgo == "rsassa_pkcs1v15":
                public_key.verify(signature, signed_bytes, padding.PKCS1v15(), md)
            elif sigalgo == "ecdsa":
                public_key.verify(signature, signed_bytes, ec.ECDSA(md))
            else:
                public_key.verify(signature, signed_bytes, md)
    except InvalidSignature:
        return False
    except (UnsupportedAlgorithm, CryptographyUnsupported, ValueError, TypeError, KeyError) as ex:
        logger.debug("signature verification failed: %s", ex)
        return False
    return True


def verify_certificate(cert, issuer) -> bool:
    """True when ``issuer``'s key verifies the signature on ``cert``."""
    return verify(cert.tbs_bytes, cert.signature_bytes, issuer, None, cert.signature_algorithm)
