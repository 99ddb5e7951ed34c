"""Nimble Selector: class feature, spell and equipment selection for Nimble characters."""

__version__ = "0.1.0"
