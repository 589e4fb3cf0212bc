"""OAuth 2.0 Authorization Code flow with PKCE for X."""

from __future__ import annotations

import logging
import threading
import urllib.parse
import webbrowser
from dataclasses import dataclass

import requests

from x_yapper.callback import CALLBACK_PATH, DEFAULT_PORT, CallbackListener
from x_yapper.pkce import PKCEMaterial

logger = logging.getLogger(__name__)

AUTH_URL = "https://twitter.com/i/oauth2/authorize"
TOKEN_URL = "https://api.x.com/2/oauth2/token"
REDIRECT_URI = f"http://localhost:{DEFAULT_PORT}{CALLBACK_PATH}"
SCOPES = "tweet.read tweet.write users.read offline.access"
_TIMEOUT = 30


class AuthError(RuntimeError):
    """The authorization flow could not produce a token."""


class AuthorizationCancelled(AuthError):
    """Interrupted before the redirect arrived."""


@dataclass(frozen=True)
class Token:
    access_token: str
    token_type: str = "bearer"
    expires_in: int = 0
    scope: str = ""
    refresh_token: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> Token:
        if not data.get("access_token"):
            raise AuthError("token response has no access_token")
        return cls(
            access_token=data["access_token"],
            token_type=data.get("token_type", "bearer"),
            expires_in=int(data.get("expires_in", 0)),
            scope=data.get("scope", ""),
            refresh_token=data.get("refresh_token"),
        )

    def to_dict(self) -> dict:
        return {
            "access_token": self.access_token,
            "token_type": self.token_type,
            "expires_in": self.expires_in,
            "scope": self.scope,
            "refresh_token": self.refresh_token,
        }


def build_authorization_url(
    client_id: str,
    code_challenge: str,
    state: str,
    *,
    redirect_uri: str = REDIRECT_URI,
    scopes: str = SCOPES,
) -> str:
    params = urllib.parse.urlencode({
        "response_type": "code",
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "scope": scopes,
        "state": state,
        "code_challenge": code_challenge,
        "code_challenge_method": "S256",
    })
    return f"{AUTH_URL}?{params}"


def exchange_code_for_token(
    client_id: str,
    client_secret: str,
    code_verifier: str,
    code: str,
    *,
    redirect_uri: str = REDIRECT_URI,
) -> Token:
    """Trade the authorization *code* for a token. One attempt, no retry."""
    try:
        resp = requests.post(
            TOKEN_URL,
            data={
                "grant_type": "authorization_code",
                "code": code,
                "code_verifier": code_verifier,
                "client_id": client_id,
                "client_secret": client_secret,
                "redirect_uri": redirect_uri,
            },
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            timeout=_TIMEOUT,
        )
    except requests.RequestException as exc:
        raise AuthError(f"error sending token request: {exc}") from exc

    if resp.status_code != 200:
        raise AuthError(
            f"error getting token, status code: {resp.status_code}, "
            f"response: {resp.text[:200]}",
        )

    try:
        data = resp.json()
    except ValueError as exc:
        raise AuthError(f"error decoding token response: {exc}") from exc
    return Token.from_dict(data)


@dataclass
class AuthSession:
    """Everything one authorization attempt needs, owned by the caller."""

    client_id: str
    client_secret: str
    pkce: PKCEMaterial
    listener: CallbackListener
    redirect_uri: str = REDIRECT_URI

    @classmethod
    def create(
        cls,
        client_id: str,
        client_secret: str,
        *,
        port: int = DEFAULT_PORT,
    ) -> AuthSession:
        pkce = PKCEMaterial.generate()
        return cls(
            client_id=client_id,
            client_secret=client_secret,
            pkce=pkce,
            listener=CallbackListener(pkce.state, port=port),
            redirect_uri=f"http://localhost:{port}{CALLBACK_PATH}",
        )

    def authorization_url(self) -> str:
        return build_authorization_url(
            self.client_id,
            self.pkce.challenge,
            self.pkce.state,
            redirect_uri=self.redirect_uri,
        )

    def wait_for_code(self, cancel: threading.Event) -> str:
        code = self.listener.wait_for_code(cancel)
        if code is None:
            raise AuthorizationCancelled("authorization cancelled before the redirect arrived")
        return code

    def exchange(self, code: str) -> Token:
        return exchange_code_for_token(
            self.client_id,
            self.client_secret,
            self.pkce.verifier,
            code,
            redirect_uri=self.redirect_uri,
        )


def authorize(
    client_id: str,
    client_secret: str,
    cancel: threading.Event,
    *,
    open_browser: bool = True,
    port: int = DEFAULT_PORT,
) -> Token:
    """Run the full browser flow and return the token.

    The callback listener is always stopped (port released) before the
    token exchange, including on cancellation.
    """
    session = AuthSession.create(client_id, client_secret, port=port)
    with session.listener as listener:
        try:
            listener.start()
        except OSError as exc:
            raise AuthError(f"cannot listen on port {port}: {exc}") from exc

        url = session.authorization_url()
        print(f"Please open this URL in your browser to authorize the application:\n{url}")
        if open_browser:
            webbrowser.open(url)

        code = session.wait_for_code(cancel)

    logger.info("Authorization code received, exchanging for token")
    return session.exchange(code)
