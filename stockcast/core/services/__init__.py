"""Application services: cache-aside fetching, stock data, prefetching."""
