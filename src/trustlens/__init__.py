"""TrustLens: account trust scoring with free quota and paid credits."""

__version__ = "0.1.0"
