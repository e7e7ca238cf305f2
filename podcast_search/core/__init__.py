"""Core transcript types and the normalizer.

The IR (ir.py) is the contract between the acquisition pipeline and the
search engine; normalizer.py is the only producer of EpisodeTranscript.
"""
