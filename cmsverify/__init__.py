# *-* coding: utf-8 *-*
__author__ = 'cmsverify contributors'
__license__ = 'MIT'
__version__ = '1.0.0'
