"""
Core business logic for the upload relay.

This module is framework-agnostic - it doesn't import FastAPI, boto3,
or httpx. Storage and the webhook are reached through Protocols, so the
pipeline can be tested in isolation.
"""
