# *-* coding: utf-8 *-*


class VerificationError(ValueError):
    """
    Base class of every failure reported by cmsverify.

    Attributes:
        reason: short, stable description (e.g. "cycle", "malformed container").
        detail: optional free-form explanation.
        category: one of "malformed", "unsupported", "untrusted", "mismatch".
    """

    category = "error"

    def __init__(self, reason, detail=None):
        self.reason = reason
        self.detail = detail
        if detail:
            super().__init__("%s: %s" % (reason, detail))
        else:
            super().__init__(reason)


class MalformedInput(VerificationError):
    category = "malformed"


class MalformedCertificate(MalformedInput):
    def __init__(self, detail=None, reason="malformed certificate"):
        super().__init__(reason, detail)


class MalformedContainer(MalformedInput):
    def __init__(self, detail=None, reason="malformed container"):
        super().__init__(reason, detail)


class UnsupportedAlgorithm(VerificationError):
    category = "unsupported"

    def __init__(self, detail=None, reason="unsupported algorithm"):
        super().__init__(reason, detail)


class UnsupportedContentType(VerificationError):
    category = "unsupported"

    def __init__(self, detail=None, reason="unsupported content type"):
        super().__init__(reason, detail)


class Untrusted(VerificationError):
    category = "untrusted"


class SignatureMismatch(VerificationError):
    category = "mismatch"

    def __init__(self, detail=None, reason="signature mismatch"):
        super().__init__(reason, detail)


class DigestMismatch(VerificationError):
    category = "mismatch"

    def __init__(self, detail=None, reason="digest mismatch"):
        super().__init__(reason, detail)


# exceptions asn1crypto raises while lazily parsing hostile input;
# deeply nested generic values exhaust the interpreter stack in .native
PARSE_ERRORS = (ValueError, TypeError, KeyError, IndexError, OverflowError, RecursionError)
