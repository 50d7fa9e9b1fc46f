#!/usr/bin/env python3
# -*- coding: utf-8 -*-

from setuptools import setup, find_packages
from codecs import open
from os import path

here = path.abspath(path.dirname(__file__))

# Get the long description from the README file
with open(path.join(here, 'README.rst'), encoding='utf-8') as f:
    long_description = f.read()

setup(
    name='cmsverify',
    version=__import__('cmsverify').__version__,
    description='Verification of PKCS#7/CMS signed data against an explicit set of trusted roots.',
    long_description=long_description,
    long_description_content_type='text/x-rst',
    author='cmsverify contributors',
    license='MIT',
    classifiers=[
        'Development Status :: 4 - Beta',
        'Operating System :: OS Independent',
        'Intended Audience :: Developers',
        'License :: OSI Approved :: MIT License',
        'Programming Language :: Python :: 3',
        'Topic :: Software Development :: Libraries :: Python Modules',
        'Topic :: Security :: Cryptography',
    ],
    keywords='cryptography pki x509 pkcs7 cms smime signature verification asn1',
    packages=find_packages(exclude=['examples', 'tests', 'docs']),
    include_package_data=True,
    platforms=["all"],
    python_requires='>=3.8',
    install_requires=['cryptography>=3.1', 'asn1crypto>=1.4', 'certifi', 'attrs>=19.2'],
    extras_require={'test': ['pytest']},
    test_suite="tests",
)
