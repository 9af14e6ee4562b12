"""
qpilot - natural-language and page-object browser specs on Playwright.
"""

__version__ = "0.1.0"
