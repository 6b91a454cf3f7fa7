"""
FastAPI dependencies resolving the per-app core components built in main.create_app().
"""
from fastapi import Request

from connect_server.flows import AuthorizationFlowManager
from connect_server.issuer import TokenIssuer


def get_flows(request: Request) -> AuthorizationFlowManager:
    return request.app.state.flows


def get_issuer(request: Request) -> TokenIssuer:
    return request.app.state.issuer
