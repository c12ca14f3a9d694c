"""Google sign-in routes.

The OAuth exchange itself is delegated to Authlib; this module only turns the
verified identity into a local user and a normal session cookie.
"""
import logging
from urllib.parse import urlencode

from authlib.integrations.starlette_client import OAuth, OAuthError
from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from recordbook.core.config import settings
from recordbook.core.errors import Conflict, ServiceUnavailable
from recordbook.core.schemas import MessageResponse
from recordbook.db.sessions import get_db
from recordbook.routes.users import logout, start_session
from recordbook.services.account_service import ExternalProfile, find_or_link_external_user


logger = logging.getLogger("recordbook.routes.auth")

router = APIRouter(prefix="/auth", tags=["Authentication"])

GOOGLE_METADATA_URL = "https://accounts.google.com/.well-known/openid-configuration"

oauth = OAuth()
if settings.google_enabled:
    oauth.register(
        name="google",
        client_id=settings.GOOGLE_CLIENT_ID,
        client_secret=settings.GOOGLE_CLIENT_SECRET,
        server_metadata_url=GOOGLE_METADATA_URL,
        client_kwargs={"scope": "openid email profile"},
    )


def _google_client():
    client = oauth.create_client("google")
    if client is None:
        raise ServiceUnavailable("Google sign-in is not configured.")
    return client


def failure_redirect(reason: str) -> RedirectResponse:
    """Send the browser back to the failure page with a short machine-readable reason."""
    url = settings.OAUTH_FAILURE_REDIRECT
    separator = "&" if "?" in url else "?"
    return RedirectResponse(url=f"{url}{separator}{urlencode({'error': reason})}", status_code=302)


def profile_from_userinfo(userinfo: dict) -> ExternalProfile:
    """Map OpenID Connect claims onto the fields the linking policy needs."""
    return ExternalProfile(
        provider_id=userinfo.get("sub"),
        email=userinfo.get("email"),
        email_verified=userinfo.get("email_verified") is True,
        display_name=userinfo.get("name"),
    )


@router.get("/google")
async def google_login(request: Request):
    """Start the Google sign-in flow (redirects to Google)."""
    client = _google_client()
    redirect_uri = request.url_for("google_callback")
    return await client.authorize_redirect(request, redirect_uri)


@router.get("/google/callback", name="google_callback")
async def google_callback(request: Request, db: Session = Depends(get_db)):
    """
    Finish Google sign-in.

    Finds, links or creates the local user, sets the session cookie and
    redirects to the configured success page. Provider errors and refused
    links redirect to the failure page with an ``error`` query parameter.
    """
    client = _google_client()
    try:
        token = await client.authorize_access_token(request)
    except OAuthError as exc:
        logger.warning("Google sign-in failed: %s", exc.error)
        return failure_redirect(exc.error or "oauth_error")

    try:
        user = find_or_link_external_user(db, profile_from_userinfo(token.get("userinfo") or {}))
    except Conflict as exc:
        logger.info("Google sign-in refused: %s", exc.message)
        return failure_redirect("account_exists")

    response = RedirectResponse(url=settings.OAUTH_SUCCESS_REDIRECT, status_code=302)
    start_session(db, request, response, user)
    return response


router.add_api_route(
    "/logout",
    logout,
    methods=["GET"],
    response_model=MessageResponse,
    summary="Logout",
)
