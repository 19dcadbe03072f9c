"""Claippy: a command-line front end for conversations with a language model."""

__version__ = "0.1.0"
