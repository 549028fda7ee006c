# activation_api/routers/deps.py

from fastapi import Request


def get_code_store(request: Request):
    return request.app.state.code_store


def get_redemption_engine(request: Request):
    return request.app.state.redemption_engine
