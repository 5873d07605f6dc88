"""Collaborators built once per app by create_app() and looked up by the views."""
from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from clinic_api.services.auth_service import AuthService
from clinic_api.services.credentials import CredentialStore
from clinic_api.services.refresh_tokens import RefreshTokenStore
from clinic_utils.resilience import ResilientCallGateway
from clinic_utils.security import TokenSigner

EXTENSION_KEY = "clinic"


@dataclass
class Services:
    signer: TokenSigner
    credentials: CredentialStore
    refresh_tokens: RefreshTokenStore
    auth: AuthService
    patients_gateway: ResilientCallGateway
    diets_gateway: ResilientCallGateway

    @property
    def gateways(self) -> list[ResilientCallGateway]:
        return [self.patients_gateway, self.diets_gateway]


def get_services() -> Services:
    return current_app.extensions[EXTENSION_KEY]
