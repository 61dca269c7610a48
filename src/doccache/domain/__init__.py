"""Content model: chain documents, chain edges and the naming codec."""
