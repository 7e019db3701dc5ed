"""Scraping pipeline: transport, extraction, decoding and resolution."""
