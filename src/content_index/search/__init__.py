"""
Embedded search indexing and query engine.

- analyzers: Tokenizers and filters (lowercase, stop, stemming)
- fields: Document ids and the nested field value variant
- document_store: Raw field values per document id
- postings: Inverted index with per-document term frequencies
- indexer: Add/update/delete/bulk mutations
- query: Free-text OR queries with frequency ranking
- mutation_log / snapshot: Crash recovery
- index: ``SearchIndex`` facade tying it together
"""
