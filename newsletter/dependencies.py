"""
FastAPI Dependencies
Resolve the services wired in create_app from app.state
"""

from fastapi import Request

from newsletter.services.authentication import CredentialVerifier
from newsletter.services.publishing import NewsletterPublisher
from newsletter.services.subscription import SubscriptionService


def get_subscription_service(request: Request) -> SubscriptionService:
    return request.app.state.subscription_service


def get_credential_verifier(request: Request) -> CredentialVerifier:
    return request.app.state.credential_verifier


def get_publisher(request: Request) -> NewsletterPublisher:
    return request.app.state.publisher
