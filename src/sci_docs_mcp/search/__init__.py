"""
Search indexing and query package.

This package provides the in-memory search stack for one corpus:
- record_store: id -> DocRecord store for one generation
- analyzers: Tokenizers and filters (lowercase, stopwords)
- stats: TF-IDF statistics
- indexer: Exact-name, prefix and keyword index construction
- generation: Immutable store + indexes snapshot
- ranker: Query planning and ranking
"""
