"""Core utilities and shared infrastructure.

- config: Configuration loading and validation
- constants: Physical constants, unit conversions, default limits
- exceptions: Enrichment exception taxonomy
- fetcher: Resilient HTTP JSON fetching with proxy fallback
"""
