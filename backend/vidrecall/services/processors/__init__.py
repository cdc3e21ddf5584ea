"""
Content Processors Package

Services that prepare a video's content for the retrieval system.

Modules:
--------
- chunker: Sentence chunking with transcript timestamp alignment
- embedder: Embedding providers and the batch-isolating generator
"""
