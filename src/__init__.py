"""
Media Relay - accepts photo and video uploads and hands them to a workflow webhook.

This package contains the complete application:
- core: Framework-agnostic upload pipeline
- infrastructure: Object storage and webhook integrations
- api: FastAPI routes and dependencies
- config: Application configuration
"""

__version__ = "0.1.0"
