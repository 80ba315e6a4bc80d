"""
LetiMail Backend
================

SaaS email drafting service: authenticates users, meters free-plan
generations, proxies prompts to an LLM completion API and sends
finished emails through a transactional email provider.

Architecture:
    - config: Application configuration with Pydantic Settings
    - models: Request/response models and versioned JSON documents
    - entities, db: SQLAlchemy tables and session management
    - repositories/: Data access layer
    - services/: Business logic layer (tokens, quota, OTP, LLM, mail)
    - auth: Auth gate and view decorators
    - routes/: HTTP handlers
    - exceptions: Custom exception hierarchy
    - logging_config: Structured JSON logging
"""

__version__ = "1.0.0"
