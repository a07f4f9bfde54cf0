"""pairfind: resumable PairCreated history extractor."""
