"""
auto-triage: GitHub issue vectorization and similarity retrieval.
"""

VERSION = "0.3.0"
