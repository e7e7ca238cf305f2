"""HTTP surface over the search engine and the batch pipeline."""
