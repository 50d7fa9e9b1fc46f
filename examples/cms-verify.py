#!/usr/bin/env vpython3
# *-* coding: utf-8 *-*
import sys
import logging

from cmsverify import truststore, verifier


def main():
    if len(sys.argv) < 3:
        print('usage: cms-verify.py signature.p7s ca.pem [content]')
        return 2
    logging.basicConfig(level=logging.DEBUG)
    with open(sys.argv[1], 'rb') as fh:
        datas = fh.read()
    with open(sys.argv[2], 'rb') as fh:
        store = truststore.TrustStoreBuilder().add_pem_bundle(fh.read()).freeze()
    datau = None
    if len(sys.argv) > 3:
        with open(sys.argv[3], 'rb') as fh:
            datau = fh.read()

    verdict = verifier.verify(datas, store, datau)
    if not verdict:
        print('invalid:', verdict.category, verdict.error)
        return 1
    print('signed by:', verdict.signer.subject_name.human_friendly)
    for cert in verdict.chain[1:]:
        print('  issued by:', cert.subject_name.human_friendly)
    print('payload bytes:', len(verdict.payload))
    return 0


sys.exit(main())
