"""
Resilient Retail Price Extraction

Modules:
    models      - Data models (RetailerConfig, PriceExtractionResult, tiers, error categories)
    common      - Shared utilities (config loader, logging, CSV utils)
    resilience  - Error classification, circuit breakers, retry policy, cancellation
    fetching    - HTTP, headless render service and AI model clients
    extraction  - Retailer registry, selector extraction, price parsing, tiered pipeline
    storage     - Result sinks (CSV, JSON lines)
    validation  - Per-retailer success statistics
"""
