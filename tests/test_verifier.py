#!/usr/bin/env vpython3
# coding: utf-8
import unittest
import datetime
from concurrent.futures import ThreadPoolExecutor

from asn1crypto import cms, pem

from cmsverify import certificate, truststore, verifier
from cmsverify.exceptions import (
    DigestMismatch,
    MalformedContainer,
    SignatureMismatch,
    UnsupportedContentType,
    Untrusted,
)

from . import test_cert
from . import signer


class VerifierTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.ca = test_cert.CA()
        cls.user, cls.user_key = cls.ca.user_create("USER 1")
        cls.sub, cls.sub_key = cls.ca.ca_createsub("AA CMS Intermediate CA")
        cls.deep, cls.deep_key = cls.ca.user_create("USER 3", cls.sub, cls.sub_key, kind="ec")
        cls.other = test_cert.CA("AA Other Root CA")
        cls.stranger, cls.stranger_key = cls.other.user_create("USER stranger")
        cls.store = truststore.build([test_cert.cert_der(cls.ca.root_cert)])

    def test_leaf_no_attrs(self):
        datau = b"payload-v1"
        datas = signer.sign(datau, self.user_key, self.user, attrs=False)
        verdict = verifier.verify(datas, self.store, datau)
        self.assertIsInstance(verdict, verifier.Valid)
        self.assertTrue(verdict)
        self.assertEqual(verdict.payload, datau)
        self.assertEqual(verdict.signer, certificate.load(test_cert.cert_der(self.user)))
        self.assertEqual(len(verdict.chain), 2)

        verdict = verifier.verify(signer.flip(datas), self.store, datau)
        self.assertIsInstance(verdict, verifier.Invalid)
        self.assertFalse(verdict)
        self.assertIsInstance(verdict.error, SignatureMismatch)
        self.assertEqual(verdict.category, "mismatch")

    def test_self_signed_hello(self):
        datas = signer.sign(b"hello", self.ca.root_key, self.ca.root_cert, detached=False)
        verdict = verifier.verify(datas, self.store)
        self.assertTrue(verdict.valid)
        self.assertEqual(verdict.payload, b"hello")
        self.assertEqual(len(verdict.chain), 1)

    def test_signed_attrs(self):
        datau = b"payload-v1"
        datas = signer.sign(datau, self.user_key, self.user)
        self.assertTrue(verifier.verify(datas, self.store, datau))
        self.assertFalse(verifier.verify(signer.flip(datas), self.store, datau))

        verdict = verifier.verify(datas, self.store, b"payload-v2")
        self.assertIsInstance(verdict.error, DigestMismatch)

    def test_tampered_content_no_attrs(self):
        datas = signer.sign(b"payload-v1", self.user_key, self.user, attrs=False)
        verdict = verifier.verify(datas, self.store, b"payload-v2")
        self.assertIsInstance(verdict.error, SignatureMismatch)

    def test_every_signature_byte(self):
        datau = b"payload-v1"
        datas = signer.sign(datau, self.user_key, self.user)
        for offset in range(0, 256, 17):
            verdict = verifier.verify(signer.flip(datas, offset=offset), self.store, datau)
            self.assertFalse(verdict, offset)

    def test_enveloping(self):
        datas = signer.sign(b"embedded", self.user_key, self.user, detached=False)
        verdict = verifier.verify(datas, self.store)
        self.assertEqual(verdict.payload, b"embedded")
        self.assertTrue(verifier.verify(datas, self.store, b"embedded"))
        verdict = verifier.verify(datas, self.store, b"other")
        self.assertIsInstance(verdict.error, DigestMismatch)

    def test_missing_detached_content(self):
        datas = signer.sign(b"payload-v1", self.user_key, self.user)
        verdict = verifier.verify(datas, self.store)
        self.assertIsInstance(verdict.error, MalformedContainer)
        self.assertEqual(verdict.reason, "no content")

    def test_intermediate_pss_and_ec(self):
        datau = b"chained"
        datas = signer.sign(datau, self.deep_key, self.deep, [self.sub])
        verdict = verifier.verify(datas, self.store, datau)
        self.assertTrue(verdict)
        self.assertEqual(len(verdict.chain), 3)

        datas = signer.sign(datau, self.user_key, self.user, pss=True, hashalgo="sha512")
        self.assertTrue(verifier.verify(datas, self.store, datau))

    def test_ed25519(self):
        user, key = self.ca.user_create("USER Ed25519", kind="ed25519")
        datas = signer.sign(b"edwards", key, user, hashalgo="sha512")
        self.assertTrue(verifier.verify(datas, self.store, b"edwards"))

    def test_untrusted(self):
        datas = signer.sign(b"payload-v1", self.stranger_key, self.stranger, [self.other.root_cert])
        verdict = verifier.verify(datas, self.store, b"payload-v1")
        self.assertIsInstance(verdict.error, Untrusted)
        self.assertEqual(verdict.reason, "no path")
        self.assertEqual(verdict.category, "untrusted")

    def test_cycle(self):
        key_a = test_cert.key_create("Cycle A", "ec")
        key_b = test_cert.key_create("Cycle B", "ec")
        name_a, name_b = self.ca.name("Cycle A"), self.ca.name("Cycle B")
        cert_a = self.ca.cert_create(name_a, name_b, key_a.public_key(), key_b, ca=True)
        cert_b = self.ca.cert_create(name_b, name_a, key_b.public_key(), key_a, ca=True)
        leaf, leaf_key = self.ca.user_create("Cycle leaf", cert_a, key_a, kind="ec")
        datas = signer.sign(b"loop", leaf_key, leaf, [cert_a, cert_b])
        verdict = verifier.verify(datas, self.store, b"loop")
        self.assertEqual(verdict.reason, "cycle")

    def test_expired(self):
        past = datetime.datetime(2020, 1, 1, tzinfo=datetime.timezone.utc)
        user, key = self.ca.user_create(
            "USER expired", not_before=past, not_after=past + datetime.timedelta(days=30)
        )
        datas = signer.sign(b"late", key, user)
        verdict = verifier.verify(datas, self.store, b"late")
        self.assertEqual(verdict.reason, "expired")
        # valid at the time it was signed
        moment = past + datetime.timedelta(days=10)
        ca = test_cert.CA()
        old_root = ca.ca_createroot(ca.root_key, "AA CMS Root CA", not_before=past)
        store = truststore.build([test_cert.cert_der(old_root)])
        self.assertTrue(verifier.verify(datas, store, b"late", moment=moment))

    def test_chain_depth_option(self):
        datas = signer.sign(b"deep", self.deep_key, self.deep, [self.sub])
        verdict = verifier.verify(datas, self.store, b"deep", max_chain_depth=2)
        self.assertEqual(verdict.reason, "too long")

    def test_malformed(self):
        verdict = verifier.verify(b"\x30\x03\x02\x01", self.store, b"x")
        self.assertIsInstance(verdict.error, MalformedContainer)
        self.assertEqual(verdict.reason, "malformed container")
        self.assertEqual(verdict.category, "malformed")

    def test_unsupported_content_type(self):
        datas = cms.ContentInfo({"content_type": "data", "content": b"abc"}).dump()
        verdict = verifier.verify(datas, self.store)
        self.assertIsInstance(verdict.error, UnsupportedContentType)
        self.assertEqual(verdict.category, "unsupported")

    def test_pem_container(self):
        datas = signer.sign(b"armored", self.user_key, self.user, detached=False)
        self.assertTrue(verifier.verify(pem.armor("CMS", datas), self.store))

    def test_signer_certificate_not_embedded(self):
        datas = signer.sign(b"bare", self.user_key, self.user, include_certs=False)
        verdict = verifier.verify(datas, self.store, b"bare")
        self.assertEqual(verdict.reason, "no signer certificate")
        verdict = verifier.verify(
            datas, self.store, b"bare", extra_certs=[test_cert.cert_pem(self.user)]
        )
        self.assertTrue(verdict)
        bad = verifier.verify(datas, self.store, b"bare", extra_certs=[b"junk"])
        self.assertEqual(bad.category, "malformed")

    def test_key_identifier_signer(self):
        datas = signer.sign(b"ski", self.user_key, self.user, sid="key_identifier")
        self.assertTrue(verifier.verify(datas, self.store, b"ski"))

    def test_content_type_attribute(self):
        def attrs(signed_value):
            return [
                cms.CMSAttribute({"type": "content_type", "values": ("signed_data",)}),
                cms.CMSAttribute({"type": "message_digest", "values": (signed_value,)}),
            ]

        datas = signer.sign(b"typed", self.user_key, self.user, attrs=attrs)
        verdict = verifier.verify(datas, self.store, b"typed")
        self.assertIsInstance(verdict.error, MalformedContainer)

    def test_missing_message_digest(self):
        def attrs(signed_value):
            return [cms.CMSAttribute({"type": "content_type", "values": ("data",)})]

        datas = signer.sign(b"nodigest", self.user_key, self.user, attrs=attrs)
        verdict = verifier.verify(datas, self.store, b"nodigest")
        self.assertIsInstance(verdict.error, DigestMismatch)

    def test_any_of_signers(self):
        datau = b"two signers"
        datas = signer.sign(
            datau, self.stranger_key, self.stranger,
            cosigners=[(self.user_key, self.user)],
        )
        verdict = verifier.verify(datas, self.store, datau)
        self.assertTrue(verdict)
        self.assertEqual(verdict.signer.subject_name.native["common_name"], "USER 1")
        self.assertEqual(len(verdict.signers), 1)

        verdict = verifier.verify(datas, self.store, datau, policy=verifier.ALL)
        self.assertIsInstance(verdict.error, Untrusted)

    def test_all_of_signers(self):
        datau = b"two signers"
        datas = signer.sign(
            datau, self.user_key, self.user,
            cosigners=[(self.deep_key, self.deep)], othercerts=[self.sub],
        )
        verdict = verifier.verify(datas, self.store, datau, policy=verifier.ALL)
        self.assertTrue(verdict)
        self.assertEqual(len(verdict.signers), 2)

    def test_no_valid_signer_reports_last_reason(self):
        datau = b"two signers"
        datas = signer.sign(
            datau, self.user_key, self.user,
            cosigners=[(self.stranger_key, self.stranger)],
        )
        # signer infos are a DER SET OF, find where USER 1 ended up
        infos = cms.ContentInfo.load(datas)["content"]["signer_infos"]
        serials = [info["sid"].chosen["serial_number"].native for info in infos]
        index = serials.index(self.user.serial_number)
        verdict = verifier.verify(signer.flip(datas, index=index), self.store, datau)
        self.assertFalse(verdict)
        self.assertEqual(verdict.reason, "signature mismatch" if index == 1 else "no path")

    def test_options(self):
        with self.assertRaises(TypeError):
            verifier.Verifier([self.ca.root_cert])
        with self.assertRaises(ValueError):
            verifier.Verifier(self.store, policy="most")

    def test_concurrent(self):
        datau = b"shared store"
        datas = signer.sign(datau, self.user_key, self.user)
        cls = verifier.Verifier(self.store)
        with ThreadPoolExecutor(max_workers=4) as pool:
            verdicts = list(pool.map(lambda _: cls.verify(datas, datau), range(16)))
        self.assertTrue(all(verdicts))
        self.assertTrue(all(verdict.payload == datau for verdict in verdicts))


if __name__ == '__main__':
    unittest.main()
