"""
Shared utilities for Rider Ops Console components.

This package contains common functionality used by the console core, the
mock API and the scripts:
- config: environment-driven settings and validation
- errors: exception taxonomy for remote calls and bookkeeping conflicts
- api_client: requests-based HTTP client with async wrappers
- logging_config: consistent logging setup
"""
