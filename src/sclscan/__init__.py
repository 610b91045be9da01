"""
sclscan - SCL Structural Scanner and Linter

A Python toolkit for scanning, linting and formatting Siemens SCL
(Structured Control Language) source files.
"""

__version__ = "0.1.0"
__author__ = "sclscan contributors"

from sclscan.scanner import scan_file, scan_source
