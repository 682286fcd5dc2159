"""Intermediate representation and the dialect parsers that build it.

Parsers are line oriented and tolerant: they always return an ``IRModule``,
recording anything they could not classify as warnings and unknown nodes.
"""
